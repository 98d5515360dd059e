"""
Startup Dashboard - Password Verifiers

Argon2id verifiers in the dashboard's canonical encoding:

    $argon2id$v=19$t=1$m=32768$p=2{base64(salt)}{base64(hash)}

Salt and hash are unpadded standard base64 (16 bytes -> 22 chars,
32 bytes -> 43 chars) appended directly after the p= segment.

Records written in the PHC string format ($argon2id$v=19$m=..,t=..,p=..$salt$hash)
are still verified. Anything else is rejected.
"""
import base64
import logging
import re
import secrets

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from argon2.low_level import Type, hash_secret_raw

logger = logging.getLogger(__name__)

TIME_COST = 1
MEMORY_COST = 32 * 1024
PARALLELISM = 2
SALT_LENGTH = 16
HASH_LENGTH = 32
ARGON2_VERSION = 19

# Upper bound on memory cost accepted from a stored verifier (KiB).
MAX_MEMORY_COST = 1024 * 1024

_B64 = r"[A-Za-z0-9+/]"
_CANONICAL = re.compile(
    r"^\$argon2id\$v=19\$t=(\d+)\$m=(\d+)\$p=(\d+)"
    rf"({_B64}{{22}})({_B64}{{43}})$"
)

_phc_hasher = PasswordHasher()


class MalformedVerifier(ValueError):
    pass


def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(text: str) -> bytes:
    return base64.b64decode(text + "=" * (-len(text) % 4))


def _derive(password: str, salt: bytes, t: int, m: int, p: int, length: int) -> bytes:
    return hash_secret_raw(
        secret=password.encode("utf-8"),
        salt=salt,
        time_cost=t,
        memory_cost=m,
        parallelism=p,
        hash_len=length,
        type=Type.ID,
        version=ARGON2_VERSION,
    )


def hash_password(password: str) -> str:
    """Hash a password with a fresh 16-byte salt."""
    salt = secrets.token_bytes(SALT_LENGTH)
    digest = _derive(password, salt, TIME_COST, MEMORY_COST, PARALLELISM, HASH_LENGTH)
    return (
        f"$argon2id$v={ARGON2_VERSION}$t={TIME_COST}$m={MEMORY_COST}$p={PARALLELISM}"
        f"{_b64encode(salt)}{_b64encode(digest)}"
    )


def parse_verifier(encoded: str):
    """Split a canonical verifier into (t, m, p, salt, hash); raises MalformedVerifier."""
    match = _CANONICAL.match(encoded or "")
    if not match:
        raise MalformedVerifier("verifier does not match the argon2id format")
    t, m, p = (int(g) for g in match.group(1, 2, 3))
    if t < 1 or p < 1 or m < 8 * p or m > MAX_MEMORY_COST:
        raise MalformedVerifier("argon2id parameters out of range")
    return t, m, p, _b64decode(match.group(4)), _b64decode(match.group(5))


def verify_password(password: str, encoded: str) -> bool:
    """True when the password matches; malformed verifiers never match."""
    if encoded and encoded.startswith("$argon2id$v=19$m="):
        try:
            return _phc_hasher.verify(encoded, password)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False
    try:
        t, m, p, salt, expected = parse_verifier(encoded)
    except MalformedVerifier as e:
        logger.warning("Rejected password verifier: %s", e)
        return False
    actual = _derive(password, salt, t, m, p, len(expected))
    return secrets.compare_digest(actual, expected)
