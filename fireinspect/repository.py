"""
Inspection store interface.

The integrity core reaches persistence only through InspectionRepository.
Implementations must:
- Return detached copies (mutating a returned Inspection never changes the store)
- Refuse to overwrite anything that is no longer InProgress
- Reject a second completed inspection at the same (asset_id, chain_seq)
"""

import copy
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .errors import ChainConflict, InvalidState, NotFound
from .inspection import Inspection, InspectionStatus


class InspectionRepository(ABC):
    """Abstract inspection store."""

    @abstractmethod
    def add(self, inspection: Inspection) -> None:
        """Insert a new in-progress inspection."""
        pass

    @abstractmethod
    def get(self, inspection_id: str) -> Inspection:
        """
        Load an inspection with its responses, photos and deficiencies.

        Raises:
            NotFound: If no inspection has this id
        """
        pass

    @abstractmethod
    def save(self, inspection: Inspection) -> None:
        """
        Persist edits to an in-progress inspection (last write wins).

        The status may move to Deleted here; it may never move to Completed.

        Raises:
            InvalidState: If the stored inspection is no longer InProgress
        """
        pass

    @abstractmethod
    def finalize(self, inspection: Inspection) -> None:
        """
        Atomically persist a completed inspection: content, hash, previous
        hash, signature, signed_at, chain position and status together.

        Raises:
            InvalidState: If the stored inspection is no longer InProgress
            ChainConflict: If the chain position is already taken
        """
        pass

    @abstractmethod
    def latest_completed(self, asset_id: str, before_seq: Optional[int] = None) -> Optional[Inspection]:
        """
        Most recently completed inspection of an asset by chain position,
        optionally restricted to positions below before_seq.
        """
        pass

    @abstractmethod
    def list_for_asset(self, asset_id: str) -> List[Inspection]:
        """All non-deleted inspections of an asset, completed ones in chain order first."""
        pass

    @abstractmethod
    def list_for_inspector(self, inspector_id: str) -> List[Inspection]:
        pass

    @abstractmethod
    def list_all(self) -> List[Inspection]:
        pass


def history_order(inspection: Inspection):
    """Sort key: completed by chain position, then the rest by creation time."""
    if inspection.chain_seq is not None:
        return (0, inspection.chain_seq, "")
    created = inspection.created_at.isoformat() if inspection.created_at else ""
    return (1, 0, created)


class InMemoryInspectionRepository(InspectionRepository):
    """
    In-memory inspection store for development/testing.

    WARNING: Not suitable for production.
    - Not persistent across restarts
    - Not shared between processes

    Use app.db.SqliteInspectionRepository for the service.
    """

    def __init__(self):
        self._records: Dict[str, Inspection] = {}
        self._lock = threading.Lock()

    def add(self, inspection: Inspection) -> None:
        with self._lock:
            if inspection.inspection_id in self._records:
                raise InvalidState(
                    f"Inspection {inspection.inspection_id} already exists",
                    inspection.inspection_id,
                )
            self._records[inspection.inspection_id] = copy.deepcopy(inspection)

    def get(self, inspection_id: str) -> Inspection:
        with self._lock:
            record = self._records.get(inspection_id)
            if record is None:
                raise NotFound(inspection_id)
            return copy.deepcopy(record)

    def _require_in_progress(self, inspection_id: str) -> Inspection:
        stored = self._records.get(inspection_id)
        if stored is None:
            raise NotFound(inspection_id)
        if stored.status != InspectionStatus.IN_PROGRESS:
            raise InvalidState(
                f"Inspection {inspection_id} is {stored.status.value} and cannot be modified",
                inspection_id,
                stored.status.value,
            )
        return stored

    def save(self, inspection: Inspection) -> None:
        if inspection.status == InspectionStatus.COMPLETED:
            raise InvalidState("Use finalize() to complete an inspection", inspection.inspection_id)
        with self._lock:
            self._require_in_progress(inspection.inspection_id)
            self._records[inspection.inspection_id] = copy.deepcopy(inspection)

    def finalize(self, inspection: Inspection) -> None:
        with self._lock:
            self._require_in_progress(inspection.inspection_id)
            for other in self._records.values():
                if (other.asset_id == inspection.asset_id
                        and other.status == InspectionStatus.COMPLETED
                        and other.chain_seq == inspection.chain_seq):
                    raise ChainConflict(inspection.asset_id, inspection.chain_seq)
            self._records[inspection.inspection_id] = copy.deepcopy(inspection)

    def latest_completed(self, asset_id: str, before_seq: Optional[int] = None) -> Optional[Inspection]:
        with self._lock:
            candidates = [
                r for r in self._records.values()
                if r.asset_id == asset_id
                and r.status == InspectionStatus.COMPLETED
                and r.chain_seq is not None
                and (before_seq is None or r.chain_seq < before_seq)
            ]
            if not candidates:
                return None
            return copy.deepcopy(max(candidates, key=lambda r: r.chain_seq))

    def _select(self, predicate) -> List[Inspection]:
        with self._lock:
            found = [
                copy.deepcopy(r) for r in self._records.values()
                if r.status != InspectionStatus.DELETED and predicate(r)
            ]
        return sorted(found, key=history_order)

    def list_for_asset(self, asset_id: str) -> List[Inspection]:
        return self._select(lambda r: r.asset_id == asset_id)

    def list_for_inspector(self, inspector_id: str) -> List[Inspection]:
        return self._select(lambda r: r.inspector_id == inspector_id)

    def list_all(self) -> List[Inspection]:
        return self._select(lambda r: True)
