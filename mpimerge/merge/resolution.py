"""Canonical identity resolution over merged_into chains."""

from typing import List, Optional

from ..core.exceptions import MergeChainError, MergeCycleError
from ..core.person import Person
from ..store.adapter import IdentityStore
from ..utils.config import default_config


def merge_chain(
    store: IdentityStore,
    person_id: str,
    max_depth: Optional[int] = None,
) -> List[Person]:
    """
    Follow merged_into pointers from a person to its canonical identity.

    Args:
        store: Identity store
        person_id: Starting person
        max_depth: Maximum number of hops to follow

    Returns:
        Persons along the chain, starting person first, canonical last

    Raises:
        NotFoundError: a person on the chain does not exist
        MergeCycleError: the chain loops back on itself
        MergeChainError: the chain is longer than max_depth
    """
    if max_depth is None:
        max_depth = default_config.max_chain_depth

    person = store.require_person(person_id)
    chain = [person]
    visited = {person.id}

    while person.merged_into is not None:
        if person.merged_into in visited:
            raise MergeCycleError(
                f"Merge chain from {person_id} loops back to {person.merged_into}"
            )
        if len(chain) > max_depth:
            raise MergeChainError(
                f"Merge chain from {person_id} exceeds {max_depth} hops"
            )
        person = store.require_person(person.merged_into)
        chain.append(person)
        visited.add(person.id)

    return chain


def resolve_canonical(
    store: IdentityStore,
    person_id: str,
    max_depth: Optional[int] = None,
) -> Person:
    """Return the surviving person a (possibly merged) person resolves to."""
    return merge_chain(store, person_id, max_depth)[-1]


def resolve_identifier(
    store: IdentityStore,
    tenant_id: str,
    system: str,
    value: str,
    max_depth: Optional[int] = None,
) -> List[Person]:
    """
    Resolve an identifier to the canonical persons that own it.

    Identifiers of absorbed persons resolve to their surviving person. More
    than one result means unmerged duplicates still exist.

    Returns:
        Distinct canonical persons ordered by id
    """
    canonical = {}
    for stored in store.list_identifiers_by_value(system, value):
        person = store.get_person(stored.person_id)
        if person is None or person.tenant_id != tenant_id:
            continue
        survivor = resolve_canonical(store, person.id, max_depth)
        canonical.setdefault(survivor.id, survivor)
    return [canonical[key] for key in sorted(canonical)]
