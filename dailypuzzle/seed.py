"""Seeded derivation of puzzle parameters.

Every puzzle parameter is derived from SHA-256(date + salt). The hash and the
salt strings are a frozen contract: changing either changes every puzzle for
every future date.
"""
import hashlib


def hash_int(key: str) -> int:
    """Stable unsigned 32-bit integer from the first 8 hex chars of SHA-256(key)."""
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
    return int(digest[:8], 16)


def range_int(key: str, lo: int, hi: int) -> int:
    """Stable integer in [lo, hi] inclusive."""
    return lo + hash_int(key) % (hi - lo + 1)
