"""
Fire Inspection Integrity Core

Tamper-evident record keeping for fire-extinguisher inspections.

A completed inspection carries three integrity fields:
    content_hash         SHA-256 of the canonical inspection content
    previous_hash        content_hash of the asset's previously completed inspection
    inspector_signature  HMAC-SHA256 over inspector id, content hash and signing time

Together they let an auditor detect content edits after completion, and
insertions, reorderings or deletions in an asset's inspection history.

Usage:
    from fireinspect import (
        ChecklistResponse,
        InMemoryInspectionRepository,
        InspectionLifecycle,
        InspectionVerifier,
        InspectorSigner,
    )

    repository = InMemoryInspectionRepository()
    signer = InspectorSigner(key_bytes)
    lifecycle = InspectionLifecycle(repository, signer)

    inspection = lifecycle.create("EXT-0042", "inspector-7", "Monthly")
    lifecycle.record_checklist_responses(inspection.inspection_id, [
        ChecklistResponse("seal_intact", "Pass"),
        ChecklistResponse("pin_in_place", "Pass"),
    ])
    completion = lifecycle.complete(inspection.inspection_id, "Pass")

    result = InspectionVerifier(repository, signer).verify(inspection.inspection_id)
    assert result.is_valid()
"""

__version__ = "1.0.0"

# Errors
from .errors import (
    InspectionError,
    InvalidState,
    NotFound,
    SerializationError,
    SigningUnavailable,
    ChainConflict,
    InvalidInput,
)

# Data model
from .inspection import (
    Inspection,
    InspectionStatus,
    InspectionPatch,
    ChecklistResponse,
    Deficiency,
    DeficiencySeverity,
    ResponseValue,
    OverallResult,
)
from .content import (
    InspectionContent,
    ChecklistOutcome,
    CHECKLIST_FIELDS,
    CRITICAL_CHECKS,
    assemble_content,
    computed_result,
)

# Canonicalization and hashing
from .canonicalization import (
    CANONICAL_VERSION,
    canonicalize,
    canonicalize_str,
    format_timestamp,
    parse_timestamp,
)
from .hashing import sha256_hex, compute_hash, verify_hash, hashes_match

# Signing
from .signing import InspectorSigner, MIN_KEY_BYTES

# Chain, store, lifecycle
from .repository import InspectionRepository, InMemoryInspectionRepository
from .chain import ChainLinker
from .lifecycle import InspectionLifecycle, CompletionResult, TRANSITIONS

# Verification
from .verifier import InspectionVerifier, VerificationResult, AssetChainReport

# Reporting
from .reporting import InspectionStats, inspection_stats

__all__ = [
    # Version
    "__version__",

    # Errors
    "InspectionError",
    "InvalidState",
    "NotFound",
    "SerializationError",
    "SigningUnavailable",
    "ChainConflict",
    "InvalidInput",

    # Data model
    "Inspection",
    "InspectionStatus",
    "InspectionPatch",
    "ChecklistResponse",
    "Deficiency",
    "DeficiencySeverity",
    "ResponseValue",
    "OverallResult",
    "InspectionContent",
    "ChecklistOutcome",
    "CHECKLIST_FIELDS",
    "CRITICAL_CHECKS",
    "assemble_content",
    "computed_result",

    # Canonicalization and hashing
    "CANONICAL_VERSION",
    "canonicalize",
    "canonicalize_str",
    "format_timestamp",
    "parse_timestamp",
    "sha256_hex",
    "compute_hash",
    "verify_hash",
    "hashes_match",

    # Signing
    "InspectorSigner",
    "MIN_KEY_BYTES",

    # Chain, store, lifecycle
    "InspectionRepository",
    "InMemoryInspectionRepository",
    "ChainLinker",
    "InspectionLifecycle",
    "CompletionResult",
    "TRANSITIONS",

    # Verification
    "InspectionVerifier",
    "VerificationResult",
    "AssetChainReport",

    # Reporting
    "InspectionStats",
    "inspection_stats",
]
