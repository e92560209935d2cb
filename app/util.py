"""
Utility functions for the fire inspection service.

Provides encoding, decimal and masking helpers shared by the service and tools.
"""

import base64
from decimal import Decimal
from typing import Optional


def b64e(b: bytes) -> str:
    """Base64 encode bytes to string."""
    return base64.b64encode(b).decode('ascii')


def b64d(s: str) -> bytes:
    """Base64 decode string to bytes."""
    return base64.b64decode(s.encode('ascii'))


def mask_sensitive(value: Optional[str], visible_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only the last N characters.
    Useful for logging.
    """
    if not value:
        return ''
    if len(value) <= visible_chars:
        return '*' * len(value)
    return '*' * (len(value) - visible_chars) + value[-visible_chars:]


def decimal_text(value: Optional[Decimal]) -> Optional[str]:
    """Decimal to its exact text form for storage; None passes through."""
    return None if value is None else str(value)


def text_decimal(value: Optional[str]) -> Optional[Decimal]:
    """Inverse of decimal_text."""
    return None if value is None else Decimal(value)
