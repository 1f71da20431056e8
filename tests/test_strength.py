"""Unit tests for passwords/strength.py -- password strength scoring.

Covers:
- Empty password short-circuit (score 0, Weak, entropy 0, "instantly")
- Length bands and per-class points with matching feedback
- Sequential / repeated / keyboard penalties are independent and cumulative
- Dictionary penalty only when enabled
- Level thresholds and crack-time step function
- Entropy counts only the character classes present
- Monotonicity: more classes at fixed length, more length at fixed classes
"""

import math

import pytest

from passwords.models import STRENGTH_MEDIUM, STRENGTH_STRONG, STRENGTH_VERY_STRONG, STRENGTH_WEAK
from passwords.strength import (
    PasswordStrengthChecker,
    calculate_entropy,
    estimate_time_to_crack,
    max_run_length,
    strength_level,
)


@pytest.fixture
def checker() -> PasswordStrengthChecker:
    return PasswordStrengthChecker()


# ---------------------------------------------------------------------------
# TestEmptyPassword
# ---------------------------------------------------------------------------


class TestEmptyPassword:
    def test_empty_result(self, checker):
        result = checker.check_strength("")
        assert result.score == 0
        assert result.level == STRENGTH_WEAK
        assert result.entropy == 0.0
        assert result.time_to_crack == "instantly"
        assert len(result.feedback) == 1


# ---------------------------------------------------------------------------
# TestScoring
# ---------------------------------------------------------------------------


class TestScoring:
    def test_short_password_gets_length_feedback(self, checker):
        result = checker.check_strength("aB3!")
        assert "Use at least 8 characters." in result.feedback
        # 0 length + 40 classes + 10 unique
        assert result.score == 50

    @pytest.mark.parametrize(
        "password,expected",
        [
            ("Xk7!Pm2@", 70),  # 8 chars: 20 + 40 + 10
            ("Xk7!Pm2@Rv9#", 80),  # 12 chars: 30 + 40 + 10
            ("Xk7!Pm2@Rv9#Tw4$", 90),  # 16 chars: 40 + 40 + 10
        ],
    )
    def test_length_bands(self, checker, password, expected):
        assert checker.check_strength(password).score == expected

    def test_missing_classes_suggested(self, checker):
        result = checker.check_strength("zkvmwpgh")
        assert "Add uppercase letters." in result.feedback
        assert "Add digits." in result.feedback
        assert "Add symbols." in result.feedback
        assert "Add lowercase letters." not in result.feedback

    def test_low_uniqueness_feedback(self, checker):
        result = checker.check_strength("xyxyxyxyxy")
        assert "Too many repeated characters." in result.feedback

    def test_sequential_penalty(self, checker):
        plain = checker.check_strength("Zm9!Kp4@")
        with_run = checker.check_strength("Zm9!Kabc")
        assert "Avoid sequences such as 'abc' or '123'." in with_run.feedback
        assert "Avoid sequences such as 'abc' or '123'." not in plain.feedback

    def test_repeated_penalty(self, checker):
        result = checker.check_strength("Zm9!Kp4@@@")
        assert "Avoid repeating the same character three or more times." in result.feedback

    def test_keyboard_penalty(self, checker):
        result = checker.check_strength("Zm9!Kqwe")
        assert "Avoid keyboard patterns such as 'qwe' or 'asd'." in result.feedback

    def test_penalties_are_cumulative(self, checker):
        # "Abc123qwe!!!": 12 chars -> 30, four classes -> 40, unique 10 >= 6 -> 10 = 80
        # minus sequential, repeated and keyboard -> 50
        result = checker.check_strength("Abc123qwe!!!")
        assert result.score == 50
        assert result.level == STRENGTH_MEDIUM

    def test_dictionary_penalty_when_enabled(self, checker):
        assert "Avoid common passwords." in checker.check_strength("Password").feedback
        assert "Avoid common passwords." in checker.check_strength("LIVERPOOL").feedback

    def test_dictionary_penalty_when_disabled(self):
        enabled = PasswordStrengthChecker(enable_dictionary_check=True).check_strength("football")
        disabled = PasswordStrengthChecker(enable_dictionary_check=False).check_strength("football")
        assert disabled.score - enabled.score == 20
        assert "Avoid common passwords." not in disabled.feedback

    def test_score_clamped_at_zero(self, checker):
        assert checker.check_strength("aaa").score >= 0

    def test_known_password_score(self, checker):
        # 10 chars -> 20, four classes -> 40, unique -> 10, "123" -> -10
        assert checker.check_strength("Secret123!").score == 60


# ---------------------------------------------------------------------------
# TestMonotonicity
# ---------------------------------------------------------------------------


class TestMonotonicity:
    def test_more_classes_score_higher_at_fixed_length(self, checker):
        one_class = checker.check_strength("zkvmwpghrt")
        four_classes = checker.check_strength("zK7!wpghrt")
        assert four_classes.score >= one_class.score

    def test_longer_scores_higher_at_fixed_classes(self, checker):
        shorter = checker.check_strength("Zm9!Kp4@")
        longer = checker.check_strength("Zm9!Kp4@Xr2#Wn8%")
        assert longer.score >= shorter.score


# ---------------------------------------------------------------------------
# TestHelpers
# ---------------------------------------------------------------------------


class TestHelpers:
    @pytest.mark.parametrize(
        "score,level",
        [(0, STRENGTH_WEAK), (29, STRENGTH_WEAK), (30, STRENGTH_MEDIUM), (59, STRENGTH_MEDIUM),
         (60, STRENGTH_STRONG), (79, STRENGTH_STRONG), (80, STRENGTH_VERY_STRONG), (100, STRENGTH_VERY_STRONG)],
    )
    def test_level_thresholds(self, score, level):
        assert strength_level(score) == level

    def test_entropy_uses_present_classes_only(self):
        assert calculate_entropy("abcd") == pytest.approx(4 * math.log2(26))
        assert calculate_entropy("aB3") == pytest.approx(3 * math.log2(62))

    def test_crack_time_steps(self):
        labels = [estimate_time_to_crack(bits) for bits in (10, 25, 35, 45, 55, 65, 80)]
        assert labels == ["seconds", "minutes", "hours", "days", "months", "years", "centuries"]

    def test_max_run_length(self):
        assert max_run_length("") == 0
        assert max_run_length("abc") == 1
        assert max_run_length("abbbcc") == 3
