"""
Per-asset hash chain.

Each completed inspection stores the content hash of the inspection that
was most recently completed for the same asset before it (None for the
first). Positions in the chain are numbered by chain_seq, assigned at
completion.

Extending a chain is serialized per asset: in process by the lock returned
from lock_for(), across processes by the store's uniqueness constraint on
(asset_id, chain_seq).
"""

import logging
import threading
from typing import Dict, Optional, Tuple

from .inspection import Inspection
from .repository import InspectionRepository

logger = logging.getLogger(__name__)


class ChainLinker:
    """Reads and validates links of per-asset inspection chains."""

    def __init__(self, repository: InspectionRepository):
        self._repository = repository
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, asset_id: str) -> threading.Lock:
        """Lock that must be held while completing an inspection of asset_id."""
        with self._guard:
            lock = self._locks.get(asset_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[asset_id] = lock
            return lock

    def prior_hash(self, asset_id: str) -> Optional[str]:
        """Content hash of the asset's most recently completed inspection, or None."""
        latest = self._repository.latest_completed(asset_id)
        return latest.content_hash if latest else None

    def next_link(self, asset_id: str) -> Tuple[Optional[str], int]:
        """Previous hash and chain position for the asset's next completion."""
        latest = self._repository.latest_completed(asset_id)
        if latest is None:
            return None, 1
        return latest.content_hash, latest.chain_seq + 1

    def expected_previous_hash(self, inspection: Inspection) -> Optional[str]:
        """
        Content hash of the completed inspection the store now reports
        immediately before this one, or None when there is none.
        """
        predecessor = self._repository.latest_completed(inspection.asset_id, before_seq=inspection.chain_seq)
        return predecessor.content_hash if predecessor else None

    def check_link(self, inspection: Inspection) -> Tuple[bool, Optional[str]]:
        """Whether the link holds, and the previous hash it was checked against."""
        if inspection.chain_seq is None:
            logger.warning("Inspection %s has no chain position", inspection.inspection_id)
            return False, None
        expected = self.expected_previous_hash(inspection)
        return (expected or None) == (inspection.previous_hash or None), expected

    def validate_link(self, inspection: Inspection) -> bool:
        """True if the stored previous_hash still points at the actual predecessor."""
        return self.check_link(inspection)[0]
