"""
Crypto utilities — bcrypt password hashing & Fernet symmetric encryption.

Password hashing:
  bcrypt ($2b$), cost from BCRYPT_ROUNDS (12 unless configured).

Symmetric encryption (GitHub OAuth tokens at rest):
  `encrypt_secret` / `decrypt_secret` use Fernet (AES-128-CBC + HMAC-SHA256).
  The Fernet key is derived from the ENCRYPTION_KEY setting with SHA-256, so
  any sufficiently random passphrase works as the configured value.
"""

import base64
import hashlib
import secrets
from functools import lru_cache

import bcrypt
from cryptography.fernet import Fernet
from flask import current_app


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password with bcrypt (BCRYPT_ROUNDS, default 12)."""
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def generate_token(nbytes: int = 32) -> str:
    """Random hex token (64 chars for the default 32 bytes)."""
    return secrets.token_hex(nbytes)


# ── GitHub token storage ─────────────────────────────────────────────────────


@lru_cache(maxsize=4)
def _fernet_for(passphrase: str) -> Fernet:
    return Fernet(base64.urlsafe_b64encode(hashlib.sha256(passphrase.encode("utf-8")).digest()))


def _fernet() -> Fernet:
    passphrase = current_app.config.get("ENCRYPTION_KEY")
    if not passphrase:
        raise RuntimeError("ENCRYPTION_KEY is not configured")
    return _fernet_for(passphrase)


def encrypt_secret(plaintext: str) -> str:
    """Encrypt an access token for the github_integrations table."""
    return _fernet().encrypt(plaintext.encode("utf-8")).decode("ascii")


def decrypt_secret(ciphertext: str) -> str:
    """Inverse of encrypt_secret; raises cryptography.fernet.InvalidToken
    when the stored value was written under a different ENCRYPTION_KEY."""
    return _fernet().decrypt(ciphertext.encode("ascii")).decode("utf-8")
