"""
Error taxonomy for the inspection integrity core.

Verification mismatches are NOT errors: they are reported through
VerificationResult. Everything here represents a failed operation.
"""

from typing import Optional


class InspectionError(Exception):
    """Base class for all inspection integrity errors."""


class InvalidState(InspectionError):
    """Operation attempted against the wrong lifecycle state."""

    def __init__(self, message: str, inspection_id: Optional[str] = None, status: Optional[str] = None):
        self.inspection_id = inspection_id
        self.status = status
        super().__init__(message)


class NotFound(InspectionError):
    """Unknown inspection (or asset)."""

    def __init__(self, inspection_id: str):
        self.inspection_id = inspection_id
        super().__init__(f"Inspection {inspection_id} not found")


class SerializationError(InspectionError):
    """Inspection content cannot be canonicalized."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class SigningUnavailable(InspectionError):
    """The inspector signing key could not be loaded. Fatal at startup."""


class ChainConflict(InspectionError):
    """
    The store rejected a chain extension because another completion for
    the same asset claimed the same chain position. Safe to retry.
    """

    def __init__(self, asset_id: str, chain_seq: int):
        self.asset_id = asset_id
        self.chain_seq = chain_seq
        super().__init__(f"Concurrent completion for asset {asset_id} at chain position {chain_seq}")


class InvalidInput(InspectionError, ValueError):
    """Malformed request values."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")
