"""
Inspector attestation.

signature = base64(HMAC-SHA256(key, inspector_id "|" content_hash "|" ISO8601(signed_at)))

The key is a process-wide secret loaded once at startup by the service's
secret provider and injected here. It is never derived from request data.
"""

import base64
import hashlib
import hmac
import logging
from datetime import datetime
from typing import Any

from .canonicalization import format_timestamp
from .errors import SigningUnavailable

logger = logging.getLogger(__name__)

MIN_KEY_BYTES = 16
SIGNATURE_ALGORITHM = "HMAC-SHA256"


def signing_payload(inspector_id: str, content_hash: str, timestamp: datetime) -> bytes:
    """Bytes covered by the inspector signature."""
    return f"{inspector_id}|{content_hash}|{format_timestamp(timestamp)}".encode('utf-8')


class InspectorSigner:
    """
    HMAC signer binding an inspector, a content hash and an instant.

    Immutable after construction. Safe to share across threads.
    """

    def __init__(self, key: bytes, key_id: str = "default"):
        if not isinstance(key, (bytes, bytearray)) or len(key) < MIN_KEY_BYTES:
            raise SigningUnavailable(
                f"Inspector signing key must be at least {MIN_KEY_BYTES} bytes"
            )
        self._key = bytes(key)
        self._key_id = key_id

    @property
    def key_id(self) -> str:
        return self._key_id

    def sign(self, inspector_id: str, content_hash: str, timestamp: datetime) -> str:
        """Create the attestation for an inspector, content hash and signing time."""
        mac = hmac.new(self._key, signing_payload(inspector_id, content_hash, timestamp), hashlib.sha256)
        return base64.b64encode(mac.digest()).decode('ascii')

    def verify(self, signature: Any, inspector_id: Any, content_hash: Any, timestamp: Any) -> bool:
        """
        Recompute the attestation and compare it exactly.

        Returns False (never raises) for malformed input.
        """
        if not isinstance(signature, str) or not signature:
            return False
        if not isinstance(inspector_id, str) or not isinstance(content_hash, str):
            return False
        if not isinstance(timestamp, datetime):
            return False
        try:
            expected = self.sign(inspector_id, content_hash, timestamp)
        except (ValueError, OverflowError) as e:
            logger.warning("Could not recompute inspector signature: %s", e)
            return False
        return hmac.compare_digest(expected.encode('ascii'), signature.encode('utf-8'))
