"""
Startup Dashboard - One-Time Passwords

TOTP (RFC 6238) secrets via pyotp plus the numeric backup code every
account receives at signup. Both are used by the forgot-password flow.

TOTP codes are 8 digits with a 60 second period.

Usage:
    from mfa import generate_totp_secret, verify_totp, generate_backup_code
"""
import logging
import secrets

import pyotp

from config import get_settings

logger = logging.getLogger(__name__)

TOTP_DIGITS = 8
TOTP_INTERVAL = 60
BACKUP_CODE_LENGTH = 12


def generate_totp_secret() -> str:
    """Generate a random base32 secret for TOTP."""
    return pyotp.random_base32()


def _totp(secret: str) -> pyotp.TOTP:
    return pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_INTERVAL)


def get_totp_uri(secret: str, user_email: str) -> str:
    """Generate an otpauth:// provisioning URI for QR code scanning."""
    return _totp(secret).provisioning_uri(
        name=user_email, issuer_name=get_settings().totp_issuer
    )


def current_totp(secret: str) -> str:
    return _totp(secret).now()


def verify_totp(secret: str, code: str) -> bool:
    """Verify a TOTP code. Allows 1 window of drift."""
    if not code or not secret:
        return False
    return _totp(secret).verify(code, valid_window=1)


def generate_backup_code() -> str:
    """12 random decimal digits."""
    return "".join(str(secrets.randbelow(10)) for _ in range(BACKUP_CODE_LENGTH))


def verify_backup_code(expected: str, provided: str) -> bool:
    if not expected or not provided:
        return False
    return secrets.compare_digest(expected.encode(), provided.encode())
