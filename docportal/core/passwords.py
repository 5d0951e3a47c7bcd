"""Password hashing (bcrypt) and password policy validation."""

from __future__ import annotations

import logging
import re
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta

import bcrypt

from .errors import HashingError
from .models import utcnow

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 12
MIN_ROUNDS = 4
MAX_ROUNDS = 31

# bcrypt only looks at the first 72 bytes of the secret.
BCRYPT_MAX_BYTES = 72

PASSWORD_MIN_LEN = 8
PASSWORD_IDEAL_LEN = 12
PASSWORD_MAX_LEN = 128

# Passwords older than this should be changed.
PASSWORD_MAX_AGE_DAYS = 90

SYMBOLS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"
_SYMBOL_RE = re.compile("[" + re.escape(SYMBOLS) + "]")

COMMON_WEAK_SUBSTRINGS: tuple[str, ...] = ("123456", "abcdef", "qwerty", "password", "admin", "letmein")
FORBIDDEN_TERMS: tuple[str, ...] = ("lisadocs", "documento", "gobierno")

# Name fragments of this length or shorter are too common to reject.
_MIN_NAME_FRAGMENT = 3


@dataclass(frozen=True)
class PasswordContext:
    """Personal data a password must not contain."""

    email: str | None = None
    full_name: str | None = None


@dataclass(frozen=True)
class StrengthReport:
    valid: bool
    violations: tuple[str, ...]
    score: int
    """0-100; informative only, validity depends on violations alone."""

    @property
    def level(self) -> str:
        return strength_level(self.score)


def strength_level(score: int) -> str:
    if score >= 90:
        return "very strong"
    if score >= 70:
        return "strong"
    if score >= 50:
        return "moderate"
    if score >= 30:
        return "weak"
    return "very weak"


def _encode(plaintext: str) -> bytes:
    return plaintext.encode("utf-8")[:BCRYPT_MAX_BYTES]


class PasswordHasher:
    """bcrypt hash/verify with a configurable cost factor."""

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        if not MIN_ROUNDS <= rounds <= MAX_ROUNDS:
            raise ValueError(f"bcrypt rounds must be between {MIN_ROUNDS} and {MAX_ROUNDS}")
        self._rounds = rounds

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, plaintext: str) -> str:
        """Hash a plain-text password for storage. Raises HashingError on primitive failure."""
        try:
            return bcrypt.hashpw(_encode(plaintext), bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")
        except (ValueError, TypeError) as exc:
            logger.error("bcrypt hash failed: %s", type(exc).__name__)
            raise HashingError("password hashing failed") from exc

    def verify(self, plaintext: str, hashed: str | None) -> bool:
        """
        Verify ``plaintext`` against a stored hash in constant time.

        Malformed or missing hashes fail closed (False). Anything the bcrypt
        binding raises beyond input-shape errors is a HashingError.
        """
        if not hashed:
            return False
        try:
            hashed_bytes = hashed.encode("utf-8")
        except (AttributeError, UnicodeEncodeError):
            return False
        try:
            return bcrypt.checkpw(_encode(plaintext), hashed_bytes)
        except (ValueError, TypeError):
            return False
        except Exception as exc:
            logger.error("bcrypt verify failed: %s", type(exc).__name__)
            raise HashingError("password verification failed") from exc

    def needs_rehash(self, hashed: str | None) -> bool:
        """True when ``hashed`` uses a lower cost than configured or is unparsable."""
        if not hashed:
            return True
        parts = hashed.split("$")
        # $2b$12$<salt+digest>
        if len(parts) != 4 or not parts[2].isdigit():
            return True
        return int(parts[2]) < self._rounds

    def should_update(
        self,
        hashed: str | None,
        last_updated: datetime,
        now: datetime | None = None,
        max_age_days: int = PASSWORD_MAX_AGE_DAYS,
    ) -> bool:
        """True when the password is older than ``max_age_days`` or its hash needs a rehash."""
        if (now or utcnow()) - last_updated > timedelta(days=max_age_days):
            return True
        return self.needs_rehash(hashed)

    def validate_strength(self, plaintext: str, context: PasswordContext | None = None) -> StrengthReport:
        return validate_strength(plaintext, context)


def validate_strength(plaintext: str, context: PasswordContext | None = None) -> StrengthReport:
    """
    Score a candidate password and list every rule it breaks.

    Pure function. A password is acceptable only when ``violations`` is empty.
    """

    violations: list[str] = []
    score = 0

    if len(plaintext) < PASSWORD_MIN_LEN:
        violations.append(f"Must be at least {PASSWORD_MIN_LEN} characters long")
    else:
        score += 20
    if len(plaintext) > PASSWORD_MAX_LEN:
        violations.append(f"Must be at most {PASSWORD_MAX_LEN} characters long")
    if len(plaintext) >= PASSWORD_IDEAL_LEN:
        score += 10

    if re.search(r"[A-Z]", plaintext):
        score += 15
    else:
        violations.append("Must contain at least one uppercase letter")

    if re.search(r"[a-z]", plaintext):
        score += 15
    else:
        violations.append("Must contain at least one lowercase letter")

    if re.search(r"\d", plaintext):
        score += 15
    else:
        violations.append("Must contain at least one digit")

    if _SYMBOL_RE.search(plaintext):
        score += 15
    else:
        violations.append("Must contain at least one special character (!@#$%^&*...)")

    lowered = plaintext.lower()
    if any(seq in lowered for seq in COMMON_WEAK_SUBSTRINGS):
        violations.append("Must not contain common sequences or obvious words")
        score -= 20
    else:
        score += 10

    if context is not None:
        violations.extend(_personal_data_violations(lowered, context))

    if any(term in lowered for term in FORBIDDEN_TERMS):
        violations.append("Must not contain terms related to the organization")

    score = max(0, min(100, score))
    return StrengthReport(valid=not violations, violations=tuple(violations), score=score)


def _personal_data_violations(lowered: str, context: PasswordContext) -> list[str]:
    found: list[str] = []
    if context.email:
        local_part = context.email.split("@", 1)[0].strip().lower()
        if len(local_part) >= _MIN_NAME_FRAGMENT and local_part in lowered:
            found.append("Must not contain your email")
    if context.full_name:
        fragments = [p for p in context.full_name.lower().split() if len(p) >= _MIN_NAME_FRAGMENT]
        if any(p in lowered for p in fragments):
            found.append("Must not contain your name")
    return found


def generate_password(length: int = PASSWORD_IDEAL_LEN) -> str:
    """Random password containing every character class the validator requires."""
    if length < 4:
        raise ValueError("length must be at least 4")
    pools = (string.ascii_uppercase, string.ascii_lowercase, string.digits, SYMBOLS)
    chars = [secrets.choice(pool) for pool in pools]
    alphabet = "".join(pools)
    chars.extend(secrets.choice(alphabet) for _ in range(length - len(chars)))
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
