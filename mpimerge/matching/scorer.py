"""
Match scoring engine with tiered decisions.

Combines independent factors into one weighted score in [0, 1] and maps the
score to a match tier.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from ..core.person import Person
from ..core.person_merge import MatchType
from .name_similarity import NameSimilarity, no_name_similarity, normalize_name


SCORE_QUANTUM = Decimal('0.01')
ZERO = Decimal('0.00')
ONE = Decimal('1')


@dataclass(frozen=True, slots=True)
class FactorScore:
    """Contribution of one factor. value is None when the factor is absent."""
    name: str
    weight: Decimal
    value: Optional[Decimal]

    @property
    def is_present(self) -> bool:
        return self.value is not None

    @property
    def contribution(self) -> Decimal:
        return self.weight * self.value if self.value is not None else ZERO


@dataclass
class MatchResult:
    """Result of scoring two person records."""
    score: Decimal = ZERO
    match_type: MatchType = MatchType.NO_MATCH
    factors: List[FactorScore] = field(default_factory=list)

    def __str__(self) -> str:
        lines = [f"Match Score: {self.score} ({self.match_type.value})"]
        for factor in self.factors:
            value = f"{factor.value:.4f}" if factor.value is not None else "absent"
            lines.append(f"  {factor.name}: {value} x {factor.weight}")
        return "\n".join(lines)

    @property
    def breakdown(self) -> Dict[str, Optional[Decimal]]:
        """Factor values by name (None for absent factors)."""
        return {factor.name: factor.value for factor in self.factors}


def tier_for_score(score: Decimal) -> MatchType:
    """Map a score to its tier."""
    if score >= MatchScorer.EXACT_THRESHOLD:
        return MatchType.EXACT
    elif score >= MatchScorer.PROBABLE_THRESHOLD:
        return MatchType.PROBABLE
    elif score >= MatchScorer.POSSIBLE_THRESHOLD:
        return MatchType.POSSIBLE
    return MatchType.NO_MATCH


def score_identifiers(person1: Person, person2: Person) -> Optional[Decimal]:
    """1.0 if the persons share any (system, value) pair, else 0.0."""
    keys1 = person1.identifier_keys()
    keys2 = person2.identifier_keys()
    if not keys1 or not keys2:
        return None
    return ONE if keys1 & keys2 else Decimal(0)


def score_birth_date(
    person1: Person,
    person2: Person,
    decay_days: int = 365,
) -> Optional[Decimal]:
    """Linear decay from 1.0 (same day) to 0.0 at decay_days apart."""
    if person1.birth_date is None or person2.birth_date is None:
        return None
    days = abs((person1.birth_date - person2.birth_date).days)
    if days >= decay_days:
        return Decimal(0)
    return ONE - Decimal(days) / Decimal(decay_days)


def score_sex(person1: Person, person2: Person) -> Optional[Decimal]:
    """1.0 if both sexes are set and equal, 0.0 if they differ."""
    if person1.sex is None or person2.sex is None:
        return None
    return ONE if person1.sex == person2.sex else Decimal(0)


class MatchScorer:
    """
    Calculates match scores between person records.

    Scoring weights:
    - Identifier overlap: 40%
    - Name similarity: 30%
    - Birth date proximity: 20%
    - Administrative sex: 10%

    Absent factors are skipped without penalty. The scorer is a pure
    function of its two inputs.
    """

    # Scoring weights (sum to 1.0)
    WEIGHTS = {
        'identifier': Decimal('0.40'),
        'name': Decimal('0.30'),
        'birth_date': Decimal('0.20'),
        'sex': Decimal('0.10'),
    }

    # Tier thresholds
    EXACT_THRESHOLD = Decimal('0.95')
    PROBABLE_THRESHOLD = Decimal('0.80')
    POSSIBLE_THRESHOLD = Decimal('0.60')

    # Days apart at which birth date similarity reaches zero
    BIRTH_DATE_DECAY_DAYS = 365

    def __init__(self, name_similarity: NameSimilarity = no_name_similarity):
        """
        Initialize the scorer.

        Args:
            name_similarity: Strategy comparing two normalized full names
        """
        self.name_similarity = name_similarity

    def score(self, person1: Person, person2: Person) -> MatchResult:
        """
        Calculate the match score between two persons.

        Args:
            person1: First person
            person2: Second person

        Returns:
            MatchResult with score, tier and per-factor breakdown
        """
        factors = [
            FactorScore('identifier', self.WEIGHTS['identifier'],
                        score_identifiers(person1, person2)),
            FactorScore('birth_date', self.WEIGHTS['birth_date'],
                        score_birth_date(person1, person2, self.BIRTH_DATE_DECAY_DAYS)),
            FactorScore('sex', self.WEIGHTS['sex'],
                        score_sex(person1, person2)),
            FactorScore('name', self.WEIGHTS['name'],
                        self._score_names(person1, person2)),
        ]

        present = [f for f in factors if f.is_present]
        if not present:
            return MatchResult(score=ZERO, match_type=MatchType.NO_MATCH, factors=factors)

        total = sum((f.contribution for f in present), ZERO)
        score = total.quantize(SCORE_QUANTUM, rounding=ROUND_HALF_UP)
        return MatchResult(score=score, match_type=tier_for_score(score), factors=factors)

    def _score_names(self, person1: Person, person2: Person) -> Optional[Decimal]:
        """Run the name strategy over normalized primary names."""
        name1 = normalize_name(person1.get_primary_name())
        name2 = normalize_name(person2.get_primary_name())
        if not name1 or not name2:
            return None

        similarity = float(self.name_similarity(name1, name2))
        similarity = min(max(similarity, 0.0), 1.0)
        return Decimal(str(similarity))
