"""
Candidate locator for duplicate person records.

Finds other persons of the same tenant that could be the same individual:
first by exact identifier collision, then by approximate demographics within
a birth date window.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from ..core.exceptions import SearchCancelledError
from ..core.person import Person
from ..core.person_merge import MatchType
from ..store.adapter import IdentityStore
from ..utils.config import MPIConfig, default_config
from .scorer import MatchScorer, MatchResult

logger = logging.getLogger(__name__)


EXACT_IDENTIFIER_SCORE = Decimal('1.00')


@dataclass(slots=True)
class MatchCandidate:
    """A person that might be a duplicate of the searched person."""
    person: Person
    score: Decimal
    match_type: MatchType
    match_result: Optional[MatchResult] = None

    @property
    def person_id(self) -> str:
        return self.person.id

    @property
    def is_exact(self) -> bool:
        return self.match_type == MatchType.EXACT


def shift_years(value: date, years: int) -> date:
    """Shift a date by whole calendar years; 29 Feb falls back to 28 Feb.

    Results outside the supported calendar clamp to date.min or date.max.
    """
    year = value.year + years
    if year < date.min.year:
        return date.min
    if year > date.max.year:
        return date.max
    try:
        return value.replace(year=year)
    except ValueError:
        return value.replace(year=year, day=28)


class CandidateLocator:
    """
    Locates duplicate candidates for a person.

    Matching Strategies:
    1. Exact pass - any shared (system, value) identifier, scored 1.00 EXACT
    2. Approximate pass - birth date within +/- N years, scored by MatchScorer
       and kept at POSSIBLE or better

    Searches are read-only.
    """

    def __init__(
        self,
        store: IdentityStore,
        scorer: Optional[MatchScorer] = None,
        config: Optional[MPIConfig] = None,
    ):
        """
        Initialize the locator.

        Args:
            store: Identity store to search
            scorer: Scorer for the approximate pass
            config: Engine configuration
        """
        self.store = store
        self.scorer = scorer or MatchScorer()
        self.config = config or default_config

    def find_candidates(
        self,
        person: Person,
        max_matches: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[MatchCandidate]:
        """
        Find potential duplicates for a person.

        Args:
            person: The person to find duplicates for
            max_matches: Maximum number of candidates to return
            cancel_event: Set by the caller to stop the search

        Returns:
            Candidates sorted by score (highest first), then by id

        Raises:
            SearchCancelledError: cancel_event was set during the search
            StoreUnavailableError: the store could not be read
        """
        found: Dict[str, MatchCandidate] = {}

        for candidate in self._exact_pass(person, cancel_event):
            found.setdefault(candidate.person_id, candidate)

        exact_count = len(found)

        if person.birth_date is not None:
            for candidate in self._approximate_pass(person, set(found), cancel_event):
                found.setdefault(candidate.person_id, candidate)

        candidates = sorted(found.values(), key=lambda c: (-c.score, c.person_id))

        logger.debug(
            f"Found {len(candidates)} candidates for person {person.id} "
            f"({exact_count} by identifier)"
        )

        if max_matches is not None:
            candidates = candidates[:max_matches]
        return candidates

    def is_likely_duplicate(self, person1: Person, person2: Person) -> bool:
        """
        Quick check if two persons are likely duplicates.

        Returns:
            True if the tier is PROBABLE or EXACT
        """
        result = self.scorer.score(person1, person2)
        return result.match_type in (MatchType.EXACT, MatchType.PROBABLE)

    def _exact_pass(
        self,
        person: Person,
        cancel_event: Optional[threading.Event],
    ) -> List[MatchCandidate]:
        """Persons sharing an identical (system, value) with the given person."""
        candidates = []
        seen = {person.id}

        for identifier in person.identifiers:
            self._check_cancelled(cancel_event)
            for stored in self.store.list_identifiers_by_value(identifier.system, identifier.value):
                if stored.person_id in seen:
                    continue
                seen.add(stored.person_id)

                other = self.store.get_person(stored.person_id)
                if other is None or not other.active or other.tenant_id != person.tenant_id:
                    continue

                candidates.append(MatchCandidate(
                    person=other,
                    score=EXACT_IDENTIFIER_SCORE,
                    match_type=MatchType.EXACT,
                ))

        return candidates

    def _approximate_pass(
        self,
        person: Person,
        exclude: set,
        cancel_event: Optional[threading.Event],
    ) -> List[MatchCandidate]:
        """Persons born within the window whose score reaches POSSIBLE."""
        years = self.config.birth_date_window_years
        start = shift_years(person.birth_date, -years)
        end = shift_years(person.birth_date, years)

        candidates = []
        for other in self.store.iter_persons_in_birth_window(person.tenant_id, start, end):
            self._check_cancelled(cancel_event)
            if other.id == person.id or other.id in exclude:
                continue

            result = self.scorer.score(person, other)
            if result.score >= MatchScorer.POSSIBLE_THRESHOLD:
                candidates.append(MatchCandidate(
                    person=other,
                    score=result.score,
                    match_type=result.match_type,
                    match_result=result,
                ))

        return candidates

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise SearchCancelledError("Candidate search cancelled")
