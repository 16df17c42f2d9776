"""
Tests for password strength scoring and generation.
"""

import pytest

from sentinel_vault.core.errors import ValidationError
from sentinel_vault.vault import strength
from sentinel_vault.vault.strength import (
    generate_passphrase,
    generate_password,
    meets_policy,
    score,
    strength_label,
)


class TestScore:
    def test_empty_is_zero(self):
        assert score("") == 0

    def test_deterministic(self):
        assert all(score("Tr0ub4dor&3") == score("Tr0ub4dor&3") for _ in range(20))

    @pytest.mark.parametrize(
        "password, expected",
        [
            # 11 chars (+10), lower+upper+digit+symbol (+40), 10 unique (+20)
            ("Tr0ub4dor&3", 70),
            # 14 chars (+20), four classes (+40), 14 unique (capped +20)
            ("hunter2HUNTER!", 80),
            # 11 chars (+10), lower+digit (+20), 10 unique (+20), "password" prefix (-20)
            ("password123", 30),
            # 12 chars (+20), lower (+10), 1 unique (+2), run of a's (-10)
            ("aaaaaaaaaaaa", 22),
            # 7 chars, lower (+10), 6 unique (+12)
            ("letmein", 22),
            # single char: lower (+10), 1 unique (+2)
            ("a", 12),
        ],
    )
    def test_known_scores(self, password, expected):
        assert score(password) == expected

    def test_repeat_penalized_against_equal_length(self):
        assert score("aaaaaaaaaaaa") < score("qmzvkrtlwxpy")

    def test_common_prefix_case_insensitive(self):
        assert score("QWERTYuiop!1") == score("zxcvbnUIOP!1") - 20
        assert score("Admin#2024xyz") < score("Zdmin#2024xyz")

    def test_two_repeats_not_penalized(self):
        assert score("aab") == score("acb") - 2  # one fewer unique char, no run penalty

    def test_clamped_at_zero(self):
        # digit (+10), 3 unique (+6), "123" prefix (-20)
        assert score("123") == 0

    def test_bonuses_top_out_at_90(self):
        assert score("Xy7!kP2@qR9#mN4$") == 90
        assert score("Xy7!kP2@qR9#mN4$Lw5%") == 90


class TestLabels:
    @pytest.mark.parametrize(
        "value, label",
        [
            (0, "Very Weak"),
            (19, "Very Weak"),
            (20, "Weak"),
            (40, "Fair"),
            (60, "Good"),
            (79, "Good"),
            (80, "Strong"),
            (100, "Strong"),
        ],
    )
    def test_thresholds(self, value, label):
        assert strength_label(value) == label

    def test_policy(self):
        assert meets_policy("Tr0ub4dor&3", 60)
        assert not meets_policy("password123", 60)


class TestGeneratePassword:
    def test_default_length_and_classes(self):
        pw = generate_password()
        assert len(pw) == 16
        assert any(c in strength.UPPERCASE for c in pw)
        assert any(c in strength.LOWERCASE for c in pw)
        assert any(c in strength.DIGITS for c in pw)
        assert any(c in strength.SYMBOLS for c in pw)

    def test_length_bounds(self):
        assert len(generate_password(8)) == 8
        assert len(generate_password(128)) == 128
        with pytest.raises(ValidationError):
            generate_password(7)
        with pytest.raises(ValidationError):
            generate_password(129)

    def test_digits_only(self):
        pw = generate_password(
            12,
            include_uppercase=False,
            include_lowercase=False,
            include_numbers=True,
            include_symbols=False,
        )
        assert pw.isdigit()

    def test_no_classes_falls_back_to_lowercase(self):
        pw = generate_password(
            10,
            include_uppercase=False,
            include_lowercase=False,
            include_numbers=False,
            include_symbols=False,
        )
        assert pw.islower() and pw.isalpha()

    def test_unique_outputs(self):
        assert len({generate_password() for _ in range(50)}) == 50


class TestGeneratePassphrase:
    def test_words(self):
        phrase = generate_passphrase(5, separator=".")
        words = phrase.split(".")
        assert len(words) == 5
        assert all(w in strength.PASSPHRASE_WORDS for w in words)

    def test_word_count_bounds(self):
        with pytest.raises(ValidationError):
            generate_passphrase(2)
        with pytest.raises(ValidationError):
            generate_passphrase(13)
