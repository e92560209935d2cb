"""
Inspection aggregate and its mutable sub-records.

An Inspection is the persisted record: content fields that are edited while
the inspection is in progress, plus the integrity fields (content hash,
previous hash, inspector signature) that are written exactly once when the
inspection is completed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional


class InspectionStatus(str, Enum):
    """
    Lifecycle states.

    IN_PROGRESS: Being edited by the inspector; no hash or signature yet
    COMPLETED: Hashed, signed and chained (terminal, immutable)
    DELETED: Soft-deleted before completion (terminal)
    """
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    DELETED = "Deleted"


class ResponseValue(str, Enum):
    """Answer to a single checklist item."""
    PASS = "Pass"
    FAIL = "Fail"
    NA = "NA"


class OverallResult(str, Enum):
    """Inspector-declared outcome. Advisory; see content.computed_result."""
    PASS = "Pass"
    FAIL = "Fail"
    CONDITIONAL_PASS = "ConditionalPass"


class DeficiencySeverity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


@dataclass
class ChecklistResponse:
    """Response to one checklist item, keyed by checklist_item_id."""
    checklist_item_id: str
    response: str
    comment: Optional[str] = None
    value: Optional[Decimal] = None
    photo_id: Optional[str] = None
    recorded_at: Optional[datetime] = None


@dataclass
class Deficiency:
    """
    Deficiency found during an inspection.

    Deficiencies follow their own remediation workflow after the inspection
    is completed, so they are recorded with the inspection but are not part
    of the attested content.
    """
    deficiency_id: str
    deficiency_type: str
    severity: str
    description: str
    action_required: Optional[str] = None
    photo_ids: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None


@dataclass
class InspectionPatch:
    """Field-level update for an in-progress inspection. None means unchanged."""
    gps_latitude: Optional[Decimal] = None
    gps_longitude: Optional[Decimal] = None
    gps_accuracy_meters: Optional[Decimal] = None
    notes: Optional[str] = None
    previous_inspection_date: Optional[str] = None
    requires_service: Optional[bool] = None
    requires_replacement: Optional[bool] = None
    failure_reason: Optional[str] = None
    corrective_action: Optional[str] = None
    photo_refs: Optional[List[str]] = None

    def apply(self, inspection: "Inspection") -> None:
        for name in self.__dataclass_fields__:
            value = getattr(self, name)
            if value is not None:
                setattr(inspection, name, list(value) if name == "photo_refs" else value)


@dataclass
class Inspection:
    """Persisted inspection aggregate."""
    inspection_id: str
    asset_id: str
    inspector_id: str
    inspection_type: str
    template_id: Optional[str] = None
    status: InspectionStatus = InspectionStatus.IN_PROGRESS

    # When the inspection was performed (attested)
    inspection_date: Optional[datetime] = None
    scheduled_date: Optional[datetime] = None

    # GPS verification
    gps_latitude: Optional[Decimal] = None
    gps_longitude: Optional[Decimal] = None
    gps_accuracy_meters: Optional[Decimal] = None

    notes: Optional[str] = None
    previous_inspection_date: Optional[str] = None
    requires_service: bool = False
    requires_replacement: bool = False
    failure_reason: Optional[str] = None
    corrective_action: Optional[str] = None

    photo_refs: List[str] = field(default_factory=list)
    responses: Dict[str, ChecklistResponse] = field(default_factory=dict)
    deficiencies: List[Deficiency] = field(default_factory=list)

    # Set at completion
    overall_result: Optional[str] = None
    computed_result: Optional[str] = None
    signature_capture: Optional[str] = None
    content_hash: Optional[str] = None
    previous_hash: Optional[str] = None
    inspector_signature: Optional[str] = None
    signed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    chain_seq: Optional[int] = None

    # Audit columns
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None

    @property
    def location_verified(self) -> bool:
        return self.gps_latitude is not None and self.gps_longitude is not None
