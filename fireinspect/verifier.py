"""
Inspection Verification

Lets an auditor confirm, after the fact, that a completed inspection was
not altered and still sits where it was placed in its asset's chain.

Verification steps:
1. Load the inspection; only Completed inspections can be verified
2. Re-assemble content and recompute the content hash
3. Recompute the inspector signature over the stored hash
4. Check that previous_hash matches the actual predecessor in the store

Mismatches are reported in VerificationResult, never raised. Store errors
propagate unchanged.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .canonicalization import format_timestamp, utc_now
from .chain import ChainLinker
from .content import assemble_content
from .errors import InvalidState, SerializationError
from .hashing import compute_hash, hashes_match
from .inspection import InspectionStatus
from .repository import InspectionRepository
from .signing import InspectorSigner

logger = logging.getLogger(__name__)

MESSAGE_VERIFIED = "Inspection integrity verified"

FAILURE_MESSAGES = {
    "content": "content hash mismatch: inspection data was altered after completion",
    "signature": "inspector signature invalid",
    "chain": "hash chain broken: previous_hash does not match the preceding completed inspection",
}


@dataclass
class VerificationResult:
    """Verdict for one completed inspection."""
    inspection_id: str
    content_valid: bool
    signature_valid: bool
    chain_valid: bool
    message: str
    stored_hash: Optional[str] = None
    computed_hash: Optional[str] = None
    previous_hash: Optional[str] = None
    expected_previous_hash: Optional[str] = None
    location_verified: bool = False
    verified_at: Optional[datetime] = None

    def is_valid(self) -> bool:
        return self.content_valid and self.signature_valid and self.chain_valid

    def failed_checks(self) -> List[str]:
        failed = []
        if not self.content_valid:
            failed.append("content")
        if not self.signature_valid:
            failed.append("signature")
        if not self.chain_valid:
            failed.append("chain")
        return failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inspection_id": self.inspection_id,
            "is_valid": self.is_valid(),
            "content_valid": self.content_valid,
            "signature_valid": self.signature_valid,
            "chain_valid": self.chain_valid,
            "message": self.message,
            "stored_hash": self.stored_hash,
            "computed_hash": self.computed_hash,
            "previous_hash": self.previous_hash,
            "expected_previous_hash": self.expected_previous_hash,
            "location_verified": self.location_verified,
            "verified_at": format_timestamp(self.verified_at) if self.verified_at else None,
        }


@dataclass
class AssetChainReport:
    """Verdicts for every completed inspection of an asset, in chain order."""
    asset_id: str
    results: List[VerificationResult] = field(default_factory=list)

    def is_valid(self) -> bool:
        return all(r.is_valid() for r in self.results)

    def invalid(self) -> List[VerificationResult]:
        return [r for r in self.results if not r.is_valid()]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "is_valid": self.is_valid(),
            "inspections_checked": len(self.results),
            "invalid_inspections": [r.inspection_id for r in self.invalid()],
            "results": [r.to_dict() for r in self.results],
        }


def describe(content_valid: bool, signature_valid: bool, chain_valid: bool) -> str:
    """Human-readable message naming each failed check."""
    failed = [
        FAILURE_MESSAGES[name]
        for name, ok in (("content", content_valid), ("signature", signature_valid), ("chain", chain_valid))
        if not ok
    ]
    if not failed:
        return MESSAGE_VERIFIED
    return "Integrity check failed: " + "; ".join(failed)


class InspectionVerifier:
    """
    Read-only integrity verifier. Takes no locks.

    Args:
        repository: Inspection store
        signer: Signer holding the same key that signed the inspections
        chain: Chain linker over the same repository (created if omitted)
        clock: Returns the current UTC time (for verified_at)
    """

    def __init__(
        self,
        repository: InspectionRepository,
        signer: InspectorSigner,
        chain: Optional[ChainLinker] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.signer = signer
        self.chain = chain or ChainLinker(repository)
        self._clock = clock

    def verify(self, inspection_id: str) -> VerificationResult:
        """
        Verify a completed inspection.

        Raises:
            NotFound: Unknown inspection id
            InvalidState: Inspection was never completed
        """
        inspection = self.repository.get(inspection_id)
        if inspection.status != InspectionStatus.COMPLETED:
            raise InvalidState(
                f"Cannot verify inspection {inspection_id}: status is {inspection.status.value}",
                inspection_id,
                inspection.status.value,
            )

        computed: Optional[str] = None
        try:
            computed = compute_hash(assemble_content(inspection))
        except SerializationError as e:
            logger.warning("Inspection %s content can no longer be canonicalized: %s", inspection_id, e)
        content_valid = computed is not None and hashes_match(computed, inspection.content_hash)

        signature_valid = self.signer.verify(
            inspection.inspector_signature,
            inspection.inspector_id,
            inspection.content_hash,
            inspection.signed_at,
        )

        chain_valid, expected_previous = self.chain.check_link(inspection)

        result = VerificationResult(
            inspection_id=inspection_id,
            content_valid=content_valid,
            signature_valid=signature_valid,
            chain_valid=chain_valid,
            message=describe(content_valid, signature_valid, chain_valid),
            stored_hash=inspection.content_hash,
            computed_hash=computed,
            previous_hash=inspection.previous_hash,
            expected_previous_hash=expected_previous,
            location_verified=inspection.location_verified,
            verified_at=self._clock(),
        )
        if result.is_valid():
            logger.info("Inspection %s verified", inspection_id)
        else:
            logger.warning("Inspection %s failed verification: %s", inspection_id, result.message)
        return result

    def verify_asset(self, asset_id: str) -> AssetChainReport:
        """Verify every completed inspection of an asset in chain order."""
        report = AssetChainReport(asset_id=asset_id)
        for inspection in self.repository.list_for_asset(asset_id):
            if inspection.status == InspectionStatus.COMPLETED:
                report.results.append(self.verify(inspection.inspection_id))
        return report
