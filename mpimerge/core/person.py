"""Person records and their identifiers."""

import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional, List, Dict, Any, Set, Tuple, Self


RUN_SYSTEM = "http://regcivil.cl/run"

# Persons carry the score of the merge that absorbed them at two decimals
PERSON_SCORE_QUANTUM = Decimal('0.01')


def quantize_person_score(score: Optional[Decimal]) -> Optional[Decimal]:
    """Quantize a person match score to 2 decimal places, or pass None through."""
    if score is None:
        return None
    return Decimal(str(score)).quantize(PERSON_SCORE_QUANTUM, rounding=ROUND_HALF_UP)


class AdministrativeSex(Enum):
    """Administrative sex of a person."""
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNKNOWN = "unknown"


def normalize_identifier_value(system: str, value: str) -> str:
    """Normalize an identifier value for its system.

    National RUN numbers are stored without dots or hyphens and upper-cased,
    so 12.345.678-k becomes 12345678K. Other systems are only trimmed.

    Args:
        system: Identifier system URI
        value: Raw identifier value

    Returns:
        Normalized value
    """
    if value is None:
        return value
    value = value.strip()
    if system == RUN_SYSTEM:
        return re.sub(r'[.\-]', '', value).upper()
    return value


@dataclass(slots=True)
class Identifier:
    """A (system, value) pair owned by exactly one person."""
    system: str
    value: str
    use: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        """The (system, value) pair used for identity comparison."""
        return (self.system, self.value)

    def normalized(self) -> 'Identifier':
        """Return a copy with the value normalized for its system."""
        return Identifier(
            system=self.system.strip(),
            value=normalize_identifier_value(self.system.strip(), self.value),
            use=self.use,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'system': self.system, 'value': self.value, 'use': self.use}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Self:
        return cls(system=data['system'], value=data['value'], use=data.get('use'))


@dataclass(slots=True)
class PersonName:
    """A human name attached to a person."""
    family: Optional[str] = None
    given: List[str] = field(default_factory=list)
    prefix: Optional[str] = None
    suffix: Optional[str] = None
    text: Optional[str] = None
    use: Optional[str] = None

    def full_name(self) -> str:
        """Return the display text, or the joined name parts."""
        if self.text and self.text.strip():
            return self.text.strip()
        parts = []
        if self.prefix:
            parts.append(self.prefix)
        parts.extend(g for g in self.given if g)
        if self.family:
            parts.append(self.family)
        if self.suffix:
            parts.append(self.suffix)
        return ' '.join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'family': self.family,
            'given': list(self.given),
            'prefix': self.prefix,
            'suffix': self.suffix,
            'text': self.text,
            'use': self.use,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Self:
        return cls(
            family=data.get('family'),
            given=list(data.get('given') or []),
            prefix=data.get('prefix'),
            suffix=data.get('suffix'),
            text=data.get('text'),
            use=data.get('use'),
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class Person:
    """A demographic identity within one tenant.

    Attributes:
        id: Unique identifier (UUID string)
        tenant_id: Owning tenant
        birth_date: Date of birth, if known
        sex: Administrative sex, if known
        active: False once the person has been absorbed by a merge
        merged_into: Id of the person this one was merged into
        match_score: Score that justified the most recent merge, if any
        identifiers: (system, value) pairs owned by this person
        names: Human names, used only for name similarity
    """

    tenant_id: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    birth_date: Optional[date] = None
    sex: Optional[AdministrativeSex] = None
    active: bool = True
    merged_into: Optional[str] = None
    match_score: Optional[Decimal] = None
    identifiers: List[Identifier] = field(default_factory=list)
    names: List[PersonName] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __str__(self) -> str:
        name = self.get_primary_name() or "Unknown"
        if self.birth_date:
            return f"{name} (b. {self.birth_date.isoformat()})"
        return name

    def __repr__(self) -> str:
        return f"Person(id={self.id!r}, tenant_id={self.tenant_id!r}, active={self.active!r})"

    @property
    def is_merged(self) -> bool:
        """True if this person has been absorbed into another one."""
        return self.merged_into is not None

    def get_primary_name(self) -> Optional[str]:
        """Get the first renderable name.

        Returns:
            Full name or None if no names exist
        """
        for name in self.names:
            full = name.full_name()
            if full:
                return full
        return None

    def identifier_keys(self) -> Set[Tuple[str, str]]:
        """Set of (system, value) pairs carried by this person."""
        return {identifier.key for identifier in self.identifiers}

    def add_identifier(self, system: str, value: str, use: Optional[str] = None) -> Identifier:
        """Attach a normalized identifier, ignoring exact duplicates."""
        identifier = Identifier(system=system, value=value, use=use).normalized()
        if identifier.key not in self.identifier_keys():
            self.identifiers.append(identifier)
        return identifier

    def normalize_identifiers(self) -> None:
        """Normalize identifier values in place and drop duplicates."""
        seen = set()
        normalized = []
        for identifier in self.identifiers:
            clean = identifier.normalized()
            if clean.key in seen:
                continue
            seen.add(clean.key)
            normalized.append(clean)
        self.identifiers = normalized

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-safe dictionary (the snapshot form).

        Returns:
            Dictionary containing all person data
        """
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'birth_date': self.birth_date.isoformat() if self.birth_date else None,
            'sex': self.sex.value if self.sex else None,
            'active': self.active,
            'merged_into': self.merged_into,
            'match_score': str(self.match_score) if self.match_score is not None else None,
            'identifiers': [i.to_dict() for i in self.identifiers],
            'names': [n.to_dict() for n in self.names],
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Self:
        """Create a Person instance from its dictionary form.

        Args:
            data: Dictionary produced by to_dict()

        Returns:
            Person instance
        """
        person = cls(
            id=data['id'],
            tenant_id=data['tenant_id'],
            birth_date=date.fromisoformat(data['birth_date']) if data.get('birth_date') else None,
            sex=AdministrativeSex(data['sex']) if data.get('sex') else None,
            active=bool(data.get('active', True)),
            merged_into=data.get('merged_into'),
            match_score=Decimal(data['match_score']) if data.get('match_score') is not None else None,
            identifiers=[Identifier.from_dict(i) for i in data.get('identifiers', [])],
            names=[PersonName.from_dict(n) for n in data.get('names', [])],
        )
        if data.get('created_at'):
            person.created_at = datetime.fromisoformat(data['created_at'])
        if data.get('updated_at'):
            person.updated_at = datetime.fromisoformat(data['updated_at'])
        return person
