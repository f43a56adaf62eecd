# src/task_planner/storage/passwords.py

"""
Salted one-way password hashing (bcrypt).

bcrypt only looks at the first 72 bytes of its input (newer releases reject
longer input), so the password is first reduced to a fixed-size SHA-256
digest, base64-encoded to keep NUL bytes out.
"""

from __future__ import annotations

import base64
import hashlib

import bcrypt

DEFAULT_ROUNDS = 12


def _prehash(password: str) -> bytes:
    digest = hashlib.sha256(password.encode("utf-8")).digest()
    return base64.b64encode(digest)


def hash_password(password: str, *, rounds: int = DEFAULT_ROUNDS) -> str:
    if not password:
        raise ValueError("password is required")
    hashed = bcrypt.hashpw(_prehash(password), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("ascii")


def check_password(candidate: str, password_hash: str) -> bool:
    if not candidate or not password_hash:
        return False
    try:
        return bcrypt.checkpw(_prehash(candidate), password_hash.encode("ascii"))
    except ValueError:
        # Malformed hash in the DB (e.g. a legacy plaintext row).
        return False
