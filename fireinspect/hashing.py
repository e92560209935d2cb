"""
Inspection content hashing.

content_hash = SHA-256(canonicalize(content)), lowercase hexadecimal.
"""

import hashlib
import hmac
from typing import Optional, Union

from .canonicalization import canonicalize
from .content import InspectionContent


def sha256_hex(data: Union[bytes, str]) -> str:
    """Compute SHA-256 hash and return as lowercase hex string."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def compute_hash(content: InspectionContent) -> str:
    """
    Compute the content hash of an inspection.

    Raises:
        SerializationError: If the content cannot be canonicalized
    """
    return sha256_hex(canonicalize(content))


def hashes_match(computed: Optional[str], stored: Optional[str]) -> bool:
    """Constant-time, case-insensitive comparison of two hex digests."""
    if not isinstance(computed, str) or not isinstance(stored, str) or not stored:
        return False
    return hmac.compare_digest(computed.lower().encode('utf-8'), stored.strip().lower().encode('utf-8'))


def verify_hash(content: InspectionContent, stored_hash: Optional[str]) -> bool:
    """
    Recompute the content hash and compare it with a stored one.

    Hex case is ignored. A missing or non-string stored hash never matches.
    """
    if not isinstance(stored_hash, str) or not stored_hash:
        return False
    return hashes_match(compute_hash(content), stored_hash)
