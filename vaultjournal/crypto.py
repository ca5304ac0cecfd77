# -*- coding: utf-8 -*-
"""Password-based encryption of the journal blob.

This module is *stateless*: nothing it derives is cached or persisted. Every
call re-derives the key from the password supplied at unlock time.

Blob layout (base64): ``salt(16) || nonce(12) || AES-256-GCM(ciphertext || tag)``.
"""
from __future__ import annotations

import base64
import binascii
import secrets
import uuid

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import DecryptionError

# ---------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------

PBKDF2_ITERATIONS = 100_000
KEY_LEN = 32
SALT_LEN = 16
NONCE_LEN = 12
TAG_LEN = 16


# ---------------------------------------------------------------------
# KDF / AEAD helpers
# ---------------------------------------------------------------------

def derive_key(password: str, salt: bytes) -> bytes:
    """Derive a 256-bit key from *password* with PBKDF2-HMAC-SHA256."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LEN,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def encrypt(plaintext: str, password: str) -> str:
    """Encrypt *plaintext* under *password*; return the base64 blob.

    Salt and nonce are fresh per call, so equal inputs never produce equal
    blobs.
    """
    salt = secrets.token_bytes(SALT_LEN)
    nonce = secrets.token_bytes(NONCE_LEN)
    key = derive_key(password, salt)
    ct = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(salt + nonce + ct).decode("ascii")


def decrypt(blob: str, password: str) -> str:
    """Authenticate and decrypt *blob*; raise DecryptionError on any failure."""
    try:
        raw = base64.b64decode(blob, validate=True)
    except (binascii.Error, TypeError, ValueError) as exc:
        raise DecryptionError() from exc
    if len(raw) < SALT_LEN + NONCE_LEN + TAG_LEN:
        raise DecryptionError()

    salt = raw[:SALT_LEN]
    nonce = raw[SALT_LEN:SALT_LEN + NONCE_LEN]
    ct = raw[SALT_LEN + NONCE_LEN:]
    key = derive_key(password, salt)
    try:
        plaintext = AESGCM(key).decrypt(nonce, ct, None)
        return plaintext.decode("utf-8")
    except (InvalidTag, UnicodeDecodeError) as exc:
        raise DecryptionError() from exc


def new_vault_id() -> str:
    """Random UUID4 naming a new vault on the relay."""
    return str(uuid.uuid4())
