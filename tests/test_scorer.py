"""
Tests for the match scorer.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from conftest import SYS, make_person
from mpimerge.core.person import AdministrativeSex
from mpimerge.core.person_merge import MatchType
from mpimerge.matching import (
    FuzzyNameSimilarity,
    MatchScorer,
    PhoneticNameSimilarity,
    normalize_name,
    tier_for_score,
)


class TestMatchScorer:
    """Tests for MatchScorer class."""

    def test_shared_identifier_and_birth_date_is_possible_boundary(self):
        """0.40 + 0.20 with nothing else lands exactly on POSSIBLE."""
        p1 = make_person('p1', [(SYS, '123')], date(1980, 5, 1))
        p2 = make_person('p2', [(SYS, '123')], date(1980, 5, 1))

        result = MatchScorer().score(p1, p2)

        assert result.score == Decimal('0.60')
        assert result.match_type == MatchType.POSSIBLE

    def test_no_factors_scores_zero(self):
        result = MatchScorer().score(make_person('p1'), make_person('p2'))

        assert result.score == Decimal('0.00')
        assert result.match_type == MatchType.NO_MATCH
        assert all(value is None for value in result.breakdown.values())

    def test_absent_factors_are_skipped(self):
        p1 = make_person('p1', birth_date=date(1990, 1, 1))
        p2 = make_person('p2', birth_date=date(1990, 1, 1))

        result = MatchScorer().score(p1, p2)

        assert result.breakdown['identifier'] is None
        assert result.breakdown['sex'] is None
        assert result.breakdown['birth_date'] == Decimal(1)
        assert result.score == Decimal('0.20')

    def test_disjoint_identifiers_score_zero(self):
        p1 = make_person('p1', [(SYS, '1')])
        p2 = make_person('p2', [(SYS, '2')])

        result = MatchScorer().score(p1, p2)

        assert result.breakdown['identifier'] == Decimal(0)
        assert result.score == Decimal('0.00')

    def test_same_value_different_system_is_not_shared(self):
        p1 = make_person('p1', [('urn:a', '1')])
        p2 = make_person('p2', [('urn:b', '1')])

        assert MatchScorer().score(p1, p2).breakdown['identifier'] == Decimal(0)

    def test_sex_mismatch_contributes_nothing(self):
        p1 = make_person('p1', sex=AdministrativeSex.MALE)
        p2 = make_person('p2', sex=AdministrativeSex.FEMALE)

        result = MatchScorer().score(p1, p2)

        assert result.breakdown['sex'] == Decimal(0)
        assert result.score == Decimal('0.00')

    def test_birth_date_decay_boundaries(self):
        base = date(2001, 6, 15)
        scorer = MatchScorer()

        def date_factor(days):
            p1 = make_person('p1', birth_date=base)
            p2 = make_person('p2', birth_date=base + timedelta(days=days))
            return scorer.score(p1, p2).breakdown['birth_date']

        assert date_factor(0) == Decimal(1)
        assert date_factor(364) > 0
        assert date_factor(365) == Decimal(0)
        assert date_factor(366) == Decimal(0)
        assert date_factor(-73) == Decimal('0.8')

    def test_rounding_is_half_up(self):
        """0.30 x 0.15 = 0.045 rounds up to 0.05."""
        scorer = MatchScorer(name_similarity=lambda a, b: 0.15)
        p1 = make_person('p1', name='Ana Soto')
        p2 = make_person('p2', name='Ana Sotto')

        assert scorer.score(p1, p2).score == Decimal('0.05')

    def test_all_factors_exact(self):
        scorer = MatchScorer(name_similarity=FuzzyNameSimilarity())
        p1 = make_person('p1', [(SYS, '1')], date(1975, 3, 3), AdministrativeSex.MALE, 'Juan Perez')
        p2 = make_person('p2', [(SYS, '1')], date(1975, 3, 3), AdministrativeSex.MALE, 'Perez, Juan')

        result = scorer.score(p1, p2)

        assert result.score == Decimal('1.00')
        assert result.match_type == MatchType.EXACT

    def test_default_name_similarity_is_no_op(self):
        p1 = make_person('p1', name='Juan Perez')
        p2 = make_person('p2', name='Juan Perez')

        result = MatchScorer().score(p1, p2)

        assert result.breakdown['name'] == Decimal('0.0')
        assert result.score == Decimal('0.00')

    def test_name_similarity_is_clamped(self):
        scorer = MatchScorer(name_similarity=lambda a, b: 7.0)
        p1 = make_person('p1', name='A B')
        p2 = make_person('p2', name='C D')

        assert scorer.score(p1, p2).score == Decimal('0.30')

    def test_symmetric_and_deterministic(self):
        scorer = MatchScorer(name_similarity=FuzzyNameSimilarity())
        p1 = make_person('p1', [(SYS, '1'), (SYS, '9')], date(1970, 1, 1),
                         AdministrativeSex.FEMALE, 'Maria Gonzalez')
        p2 = make_person('p2', [(SYS, '9')], date(1970, 4, 1),
                         AdministrativeSex.FEMALE, 'Maria Gonzales')

        first = scorer.score(p1, p2)
        assert scorer.score(p2, p1).score == first.score
        for _ in range(5):
            again = scorer.score(p1, p2)
            assert again.score == first.score
            assert again.match_type == first.match_type

    @pytest.mark.parametrize('score,tier', [
        ('1.00', MatchType.EXACT),
        ('0.95', MatchType.EXACT),
        ('0.94', MatchType.PROBABLE),
        ('0.80', MatchType.PROBABLE),
        ('0.79', MatchType.POSSIBLE),
        ('0.60', MatchType.POSSIBLE),
        ('0.59', MatchType.NO_MATCH),
        ('0.00', MatchType.NO_MATCH),
    ])
    def test_tier_thresholds(self, score, tier):
        assert tier_for_score(Decimal(score)) == tier


class TestNameSimilarity:
    """Tests for name normalization and similarity strategies."""

    def test_normalize_removes_honorifics_and_punctuation(self):
        normalized = normalize_name("Dr. Juan Pérez-Soto Jr.")
        assert 'dr' not in normalized.split()
        assert 'jr' not in normalized.split()
        assert normalized == 'juan pérez soto'

    def test_normalize_empty(self):
        assert normalize_name(None) == ''
        assert normalize_name('   ') == ''

    def test_fuzzy_ignores_token_order(self):
        assert FuzzyNameSimilarity()('juan perez', 'perez juan') == 1.0
        assert FuzzyNameSimilarity()('juan perez', '') == 0.0

    def test_phonetic_matches_spelling_variants(self):
        similarity = PhoneticNameSimilarity()
        assert similarity('john smith', 'john smyth') == 1.0
        assert similarity('john smith', 'mary jones') < 0.5
