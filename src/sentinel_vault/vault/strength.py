# Sentinel Vault - Password Strength & Generation
#
# score() is a pure, deterministic function: the vault write path, the
# registration policy and the health dashboard all call this one
# implementation.
#
# Scoring (0-100):
#   length:      +10 at >=8, +10 at >=12, +10 at >=16
#   classes:     +10 each for lowercase, uppercase, digit, symbol
#   uniqueness:  +2 per distinct character, capped at +20
#   penalties:   -10 for any character repeated 3+ times in a row
#                -20 when it starts (case-insensitive) with a common token

import re
import secrets
from typing import List

from ..core.errors import ValidationError

COMMON_PREFIXES = ("abc", "123", "qwerty", "password", "admin", "welcome")

_LOWER = re.compile(r"[a-z]")
_UPPER = re.compile(r"[A-Z]")
_DIGIT = re.compile(r"[0-9]")
_SYMBOL = re.compile(r"[^A-Za-z0-9]")
_REPEAT = re.compile(r"(.)\1{2,}")

STRONG_THRESHOLD = 80
WEAK_THRESHOLD = 50

UPPERCASE = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
LOWERCASE = "abcdefghijklmnopqrstuvwxyz"
DIGITS = "0123456789"
SYMBOLS = "!@#$%^&*()-_=+[]{}|;:,.<>?/"

MIN_GENERATED_LENGTH = 8
MAX_GENERATED_LENGTH = 128

PASSPHRASE_WORDS = [
    "apple", "banana", "orange", "grape", "kiwi", "melon",
    "house", "table", "chair", "window", "door", "floor",
    "happy", "brave", "quick", "smart", "kind", "wise",
    "river", "ocean", "mountain", "forest", "desert", "valley",
    "sun", "moon", "star", "planet", "galaxy", "comet",
]


def score(password: str) -> int:
    """Score a candidate password on a 0-100 scale. Empty scores 0."""
    if not password:
        return 0

    total = 0
    length = len(password)
    if length >= 8:
        total += 10
    if length >= 12:
        total += 10
    if length >= 16:
        total += 10

    for pattern in (_LOWER, _UPPER, _DIGIT, _SYMBOL):
        if pattern.search(password):
            total += 10

    total += min(20, len(set(password)) * 2)

    if _REPEAT.search(password):
        total -= 10
    if password.lower().startswith(COMMON_PREFIXES):
        total -= 20

    return max(0, min(100, total))


def strength_label(value: int) -> str:
    """Human label for a score."""
    if value >= 80:
        return "Strong"
    if value >= 60:
        return "Good"
    if value >= 40:
        return "Fair"
    if value >= 20:
        return "Weak"
    return "Very Weak"


def meets_policy(password: str, minimum: int) -> bool:
    return score(password) >= minimum


def generate_password(
    length: int = 16,
    include_uppercase: bool = True,
    include_lowercase: bool = True,
    include_numbers: bool = True,
    include_symbols: bool = True,
) -> str:
    """
    Generate a random password with the `secrets` CSPRNG.

    Every selected character class is guaranteed to appear at least once.
    Falls back to lowercase when no class is selected.
    """
    if not MIN_GENERATED_LENGTH <= length <= MAX_GENERATED_LENGTH:
        raise ValidationError(
            f"Length must be between {MIN_GENERATED_LENGTH} and {MAX_GENERATED_LENGTH}"
        )

    pools: List[str] = []
    if include_uppercase:
        pools.append(UPPERCASE)
    if include_lowercase:
        pools.append(LOWERCASE)
    if include_numbers:
        pools.append(DIGITS)
    if include_symbols:
        pools.append(SYMBOLS)
    if not pools:
        pools.append(LOWERCASE)

    alphabet = "".join(pools)
    chars = [secrets.choice(pool) for pool in pools]
    chars.extend(secrets.choice(alphabet) for _ in range(length - len(chars)))

    # Fisher-Yates with the CSPRNG so the guaranteed characters are not
    # always at the front.
    for i in range(len(chars) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        chars[i], chars[j] = chars[j], chars[i]
    return "".join(chars)


def generate_passphrase(word_count: int = 4, separator: str = "-") -> str:
    """Generate a word-based passphrase, e.g. 'river-brave-comet-table'."""
    if not 3 <= word_count <= 12:
        raise ValidationError("Word count must be between 3 and 12")
    return separator.join(secrets.choice(PASSPHRASE_WORDS) for _ in range(word_count))
