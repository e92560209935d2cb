"""
Inspection Lifecycle

State machine:

    InProgress --complete--> Completed   (terminal, immutable)
    InProgress --delete----> Deleted     (terminal, soft delete)

Every operation checks the inspection's status against TRANSITIONS or
MUTABLE_STATES before touching it. Completion is the only place where the
content hash, previous hash and inspector signature are produced, and it
writes all of them together with the status change.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from .canonicalization import ensure_utc, format_timestamp, utc_now
from .chain import ChainLinker
from .content import assemble_content, computed_result
from .errors import InvalidInput, InvalidState
from .hashing import compute_hash
from .inspection import (
    ChecklistResponse,
    Deficiency,
    DeficiencySeverity,
    Inspection,
    InspectionPatch,
    InspectionStatus,
    OverallResult,
    ResponseValue,
)
from .repository import InspectionRepository
from .signing import InspectorSigner

logger = logging.getLogger(__name__)


TRANSITIONS: Dict[InspectionStatus, FrozenSet[InspectionStatus]] = {
    InspectionStatus.IN_PROGRESS: frozenset({InspectionStatus.COMPLETED, InspectionStatus.DELETED}),
    InspectionStatus.COMPLETED: frozenset(),
    InspectionStatus.DELETED: frozenset(),
}

MUTABLE_STATES: FrozenSet[InspectionStatus] = frozenset({InspectionStatus.IN_PROGRESS})


@dataclass
class CompletionResult:
    """Integrity fields produced by a completion."""
    inspection_id: str
    asset_id: str
    content_hash: str
    previous_hash: Optional[str]
    signature: str
    signed_at: datetime
    computed_result: str
    chain_seq: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inspection_id": self.inspection_id,
            "asset_id": self.asset_id,
            "content_hash": self.content_hash,
            "previous_hash": self.previous_hash,
            "signature": self.signature,
            "signed_at": format_timestamp(self.signed_at),
            "computed_result": self.computed_result,
            "chain_seq": self.chain_seq,
        }


def _new_id() -> str:
    return str(uuid.uuid4())


def _required(field: str, value: Optional[str]) -> str:
    if value is None or not str(value).strip():
        raise InvalidInput(field, "is required")
    return value


def _enum_value(enum_cls, field: str, value: Any) -> str:
    try:
        return enum_cls(value).value
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidInput(field, f"must be one of {allowed}, got {value!r}")


def _dated(inspection: Inspection) -> bool:
    return isinstance(inspection.inspection_date, datetime)


def _number(field: str, value: Any) -> Optional[Decimal]:
    """Finite numeric value as a Decimal; None passes through."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidInput(field, "expected a number, got bool")
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise InvalidInput(field, f"not a valid number: {value!r}")
    if not number.is_finite():
        raise InvalidInput(field, "must be finite")
    return number


class InspectionLifecycle:
    """
    Create, edit, complete and delete inspections.

    Args:
        repository: Inspection store
        signer: Process-wide inspector signer
        chain: Chain linker over the same repository (created if omitted)
        clock: Returns the current UTC time
        id_factory: Returns new inspection and deficiency ids
    """

    def __init__(
        self,
        repository: InspectionRepository,
        signer: InspectorSigner,
        chain: Optional[ChainLinker] = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = _new_id,
    ):
        self.repository = repository
        self.signer = signer
        self.chain = chain or ChainLinker(repository)
        self._clock = clock
        self._new_id = id_factory

    # ============================================================
    # State checks
    # ============================================================

    @staticmethod
    def _require_mutable(inspection: Inspection, operation: str) -> None:
        if inspection.status not in MUTABLE_STATES:
            logger.warning(
                "Rejected %s on inspection %s in status %s",
                operation, inspection.inspection_id, inspection.status.value,
            )
            raise InvalidState(
                f"Cannot {operation} inspection {inspection.inspection_id}: status is {inspection.status.value}",
                inspection.inspection_id,
                inspection.status.value,
            )

    @staticmethod
    def _require_transition(inspection: Inspection, target: InspectionStatus) -> None:
        if target in TRANSITIONS[inspection.status]:
            return
        logger.warning(
            "Rejected transition %s -> %s on inspection %s",
            inspection.status.value, target.value, inspection.inspection_id,
        )
        if target == InspectionStatus.DELETED and inspection.status == InspectionStatus.COMPLETED:
            raise InvalidState(
                "Cannot delete completed inspections (audit trail preservation)",
                inspection.inspection_id,
                inspection.status.value,
            )
        raise InvalidState(
            f"Inspection {inspection.inspection_id} cannot move from "
            f"{inspection.status.value} to {target.value}",
            inspection.inspection_id,
            inspection.status.value,
        )

    # ============================================================
    # Operations
    # ============================================================

    def create(
        self,
        asset_id: str,
        inspector_id: str,
        inspection_type: str,
        template_id: Optional[str] = None,
        inspection_date: Optional[datetime] = None,
        scheduled_date: Optional[datetime] = None,
        gps_latitude: Optional[Decimal] = None,
        gps_longitude: Optional[Decimal] = None,
        gps_accuracy_meters: Optional[Decimal] = None,
        notes: Optional[str] = None,
    ) -> Inspection:
        """Start a new in-progress inspection of an asset."""
        now = self._clock()
        inspection = Inspection(
            inspection_id=self._new_id(),
            asset_id=_required("asset_id", asset_id),
            inspector_id=_required("inspector_id", inspector_id),
            inspection_type=_required("inspection_type", inspection_type),
            template_id=template_id,
            inspection_date=inspection_date or now,
            scheduled_date=scheduled_date,
            gps_latitude=gps_latitude,
            gps_longitude=gps_longitude,
            gps_accuracy_meters=gps_accuracy_meters,
            notes=notes,
            created_at=now,
            modified_at=now,
        )
        self.repository.add(inspection)
        logger.info("Created inspection %s for asset %s", inspection.inspection_id, asset_id)
        return inspection

    def get(self, inspection_id: str) -> Inspection:
        return self.repository.get(inspection_id)

    def update(self, inspection_id: str, patch: InspectionPatch) -> Inspection:
        """Apply a field-level patch. Only while InProgress."""
        inspection = self.repository.get(inspection_id)
        self._require_mutable(inspection, "update")
        patch.apply(inspection)
        inspection.modified_at = self._clock()
        self.repository.save(inspection)
        return inspection

    def record_checklist_responses(
        self,
        inspection_id: str,
        responses: Iterable[ChecklistResponse],
    ) -> Inspection:
        """
        Upsert checklist responses by item key. Only while InProgress.

        Every response is attested. Only item keys named in CHECKLIST_FIELDS
        set a critical check and so can force a Fail; values on the keys in
        QUANTITY_ITEMS fill the pressure and weight fields.

        Raises:
            InvalidInput: Unknown response or a non-numeric value
        """
        inspection = self.repository.get(inspection_id)
        self._require_mutable(inspection, "record responses on")
        now = self._clock()
        count = 0
        for response in responses:
            item_id = _required("checklist_item_id", response.checklist_item_id)
            value = _enum_value(ResponseValue, f"responses[{item_id}].response", response.response)
            inspection.responses[item_id] = ChecklistResponse(
                checklist_item_id=item_id,
                response=value,
                comment=response.comment,
                value=_number(f"responses[{item_id}].value", response.value),
                photo_id=response.photo_id,
                recorded_at=now,
            )
            count += 1
        inspection.modified_at = now
        self.repository.save(inspection)
        logger.debug("Recorded %d checklist responses on inspection %s", count, inspection_id)
        return inspection

    def responses(self, inspection_id: str) -> List[ChecklistResponse]:
        inspection = self.repository.get(inspection_id)
        return [inspection.responses[key] for key in sorted(inspection.responses)]

    def add_photo(self, inspection_id: str, photo_ref: str) -> Inspection:
        """Append a photo reference. Only while InProgress."""
        inspection = self.repository.get(inspection_id)
        self._require_mutable(inspection, "add a photo to")
        inspection.photo_refs.append(_required("photo_ref", photo_ref))
        inspection.modified_at = self._clock()
        self.repository.save(inspection)
        return inspection

    def record_deficiency(
        self,
        inspection_id: str,
        deficiency_type: str,
        severity: str,
        description: str,
        action_required: Optional[str] = None,
        photo_ids: Optional[List[str]] = None,
    ) -> Deficiency:
        """Record a deficiency found during the inspection. Only while InProgress."""
        inspection = self.repository.get(inspection_id)
        self._require_mutable(inspection, "record a deficiency on")
        now = self._clock()
        deficiency = Deficiency(
            deficiency_id=self._new_id(),
            deficiency_type=_required("deficiency_type", deficiency_type),
            severity=_enum_value(DeficiencySeverity, "severity", severity),
            description=_required("description", description),
            action_required=action_required,
            photo_ids=list(photo_ids or []),
            created_at=now,
        )
        inspection.deficiencies.append(deficiency)
        inspection.modified_at = now
        self.repository.save(inspection)
        return deficiency

    def complete(
        self,
        inspection_id: str,
        overall_result: str,
        notes: Optional[str] = None,
        signature_material: Optional[str] = None,
    ) -> CompletionResult:
        """
        Complete an inspection: hash, sign and chain it, then freeze it.

        Steps, under the asset's chain lock:
        1. Reload and require InProgress
        2. Assemble content and compute pass/fail
        3. Look up the prior hash and next chain position
        4. Compute the content hash and sign it with the current time
        5. Persist integrity fields and status=Completed in one write

        Raises:
            InvalidInput: Unknown overall_result
            InvalidState: Inspection is not InProgress
            SerializationError: Content cannot be canonicalized (nothing persisted)
            ChainConflict: Another process extended the chain concurrently
        """
        declared = _enum_value(OverallResult, "overall_result", overall_result)
        asset_id = self.repository.get(inspection_id).asset_id

        with self.chain.lock_for(asset_id):
            inspection = self.repository.get(inspection_id)
            self._require_transition(inspection, InspectionStatus.COMPLETED)

            inspection.overall_result = declared
            if notes is not None:
                inspection.notes = notes
            inspection.signature_capture = signature_material

            content = assemble_content(inspection)
            result = computed_result(content)
            if declared == OverallResult.PASS.value and content.failed_checks():
                logger.info(
                    "Inspection %s declared Pass but failed critical checks %s",
                    inspection_id, ", ".join(content.failed_checks()),
                )

            previous_hash, chain_seq = self.chain.next_link(asset_id)
            content_hash = compute_hash(content)
            signed_at = self._clock()
            signature = self.signer.sign(inspection.inspector_id, content_hash, signed_at)

            inspection.computed_result = result
            inspection.content_hash = content_hash
            inspection.previous_hash = previous_hash
            inspection.inspector_signature = signature
            inspection.signed_at = signed_at
            inspection.completed_at = signed_at
            inspection.chain_seq = chain_seq
            inspection.modified_at = signed_at
            inspection.status = InspectionStatus.COMPLETED

            self.repository.finalize(inspection)

        logger.info(
            "Completed inspection %s (asset %s, chain position %d, result %s)",
            inspection_id, asset_id, chain_seq, result,
        )
        return CompletionResult(
            inspection_id=inspection_id,
            asset_id=asset_id,
            content_hash=content_hash,
            previous_hash=previous_hash,
            signature=signature,
            signed_at=signed_at,
            computed_result=result,
            chain_seq=chain_seq,
        )

    def delete(self, inspection_id: str) -> Inspection:
        """Soft-delete an in-progress inspection."""
        inspection = self.repository.get(inspection_id)
        self._require_transition(inspection, InspectionStatus.DELETED)
        inspection.status = InspectionStatus.DELETED
        inspection.modified_at = self._clock()
        self.repository.save(inspection)
        logger.info("Deleted inspection %s", inspection_id)
        return inspection

    # ============================================================
    # Queries
    # ============================================================

    def history(self, asset_id: str) -> List[Inspection]:
        """Inspections of an asset: completed in chain order, then in-progress."""
        return self.repository.list_for_asset(asset_id)

    def by_inspector(
        self,
        inspector_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Inspection]:
        """Inspections by an inspector, optionally limited to an inspection date range."""
        found = self.repository.list_for_inspector(inspector_id)
        if start is not None:
            start = ensure_utc(start)
            found = [i for i in found if _dated(i) and ensure_utc(i.inspection_date) >= start]
        if end is not None:
            end = ensure_utc(end)
            found = [i for i in found if _dated(i) and ensure_utc(i.inspection_date) <= end]
        return found
