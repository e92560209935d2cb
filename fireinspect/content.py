"""
InspectionContent: the attested, hashable payload of an inspection.

Content is a value object assembled from the persisted Inspection at
completion time, and re-assembled the same way at verification time.
Checklist responses are mapped onto the named physical-condition checks
through CHECKLIST_FIELDS.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from .inspection import Inspection, ResponseValue


# checklist item key -> value of the content field when the item passes
CHECKLIST_FIELDS: Dict[str, bool] = {
    "is_accessible": True,
    "has_obstructions": False,
    "signage_visible": True,
    "seal_intact": True,
    "pin_in_place": True,
    "nozzle_clear": True,
    "hose_condition_good": True,
    "gauge_in_green_zone": True,
    "physical_damage_present": False,
    "inspection_tag_attached": True,
}

# Every mapped check is critical: one failure forces a Fail result.
CRITICAL_CHECKS: Tuple[str, ...] = tuple(CHECKLIST_FIELDS)

# checklist item key -> content field receiving the response's numeric value
QUANTITY_ITEMS: Dict[str, str] = {
    "gauge_in_green_zone": "gauge_pressure_psi",
    "weight": "weight_pounds",
}

RESULT_PASS = "Pass"
RESULT_FAIL = "Fail"


@dataclass(frozen=True)
class ChecklistOutcome:
    """One checklist response as it appears in attested content."""
    item_key: str
    response: str
    comment: Optional[str] = None
    value: Optional[Decimal] = None
    photo_id: Optional[str] = None


@dataclass(frozen=True)
class InspectionContent:
    """
    The hashable payload of an inspection.

    Identifiers of the inspection itself, integrity fields, status and audit
    columns are absent: they are not attested content.
    """
    asset_id: Optional[str]
    inspector_id: Optional[str]
    inspection_date: Optional[datetime]
    inspection_type: Optional[str]

    gps_latitude: Optional[Decimal] = None
    gps_longitude: Optional[Decimal] = None
    gps_accuracy_meters: Optional[Decimal] = None

    is_accessible: Optional[bool] = None
    has_obstructions: Optional[bool] = None
    signage_visible: Optional[bool] = None
    seal_intact: Optional[bool] = None
    pin_in_place: Optional[bool] = None
    nozzle_clear: Optional[bool] = None
    hose_condition_good: Optional[bool] = None
    gauge_in_green_zone: Optional[bool] = None
    gauge_pressure_psi: Optional[Decimal] = None
    physical_damage_present: Optional[bool] = None
    damage_description: Optional[str] = None
    weight_pounds: Optional[Decimal] = None
    inspection_tag_attached: Optional[bool] = None

    previous_inspection_date: Optional[str] = None
    notes: Optional[str] = None
    requires_service: bool = False
    requires_replacement: bool = False
    failure_reason: Optional[str] = None
    corrective_action: Optional[str] = None
    declared_result: Optional[str] = None

    photo_refs: Tuple[str, ...] = field(default_factory=tuple)
    checklist: Tuple[ChecklistOutcome, ...] = field(default_factory=tuple)

    def failed_checks(self) -> Tuple[str, ...]:
        """Critical checks whose recorded value is the failing one."""
        failed = []
        for name in CRITICAL_CHECKS:
            value = getattr(self, name)
            if value is not None and value != CHECKLIST_FIELDS[name]:
                failed.append(name)
        return tuple(failed)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InspectionContent":
        """Build content from a plain JSON-style dict (CLI and fixtures)."""
        values = dict(data)
        date = values.get("inspection_date")
        if isinstance(date, str):
            values["inspection_date"] = datetime.fromisoformat(date.replace("Z", "+00:00"))
        for name in ("gps_latitude", "gps_longitude", "gps_accuracy_meters", "gauge_pressure_psi", "weight_pounds"):
            if values.get(name) is not None:
                values[name] = Decimal(str(values[name]))
        values["photo_refs"] = tuple(values.get("photo_refs") or ())
        values["checklist"] = tuple(
            ChecklistOutcome(
                item_key=item["item_key"],
                response=item["response"],
                comment=item.get("comment"),
                value=Decimal(str(item["value"])) if item.get("value") is not None else None,
                photo_id=item.get("photo_id"),
            )
            for item in values.get("checklist") or ()
        )
        return cls(**values)


def computed_result(content: InspectionContent) -> str:
    """
    Pass only if no critical check failed.

    Checks that were not assessed (no response, or NA) do not fail the
    inspection. The inspector-declared result never overrides a failure.
    """
    return RESULT_FAIL if content.failed_checks() else RESULT_PASS


def assemble_content(inspection: Inspection) -> InspectionContent:
    """Assemble the attested content of an inspection from its sub-records."""
    checks: Dict[str, Any] = {}
    for key, response in inspection.responses.items():
        if key in CHECKLIST_FIELDS:
            passing = CHECKLIST_FIELDS[key]
            if response.response == ResponseValue.PASS.value:
                checks[key] = passing
            elif response.response == ResponseValue.FAIL.value:
                checks[key] = not passing
        if key in QUANTITY_ITEMS and response.value is not None:
            checks[QUANTITY_ITEMS[key]] = response.value

    damage = inspection.responses.get("physical_damage_present")
    if damage is not None and checks.get("physical_damage_present"):
        checks["damage_description"] = damage.comment

    checklist = tuple(
        ChecklistOutcome(
            item_key=r.checklist_item_id,
            response=r.response,
            comment=r.comment,
            value=r.value,
            photo_id=r.photo_id,
        )
        for r in inspection.responses.values()
    )

    return InspectionContent(
        asset_id=inspection.asset_id,
        inspector_id=inspection.inspector_id,
        inspection_date=inspection.inspection_date,
        inspection_type=inspection.inspection_type,
        gps_latitude=inspection.gps_latitude,
        gps_longitude=inspection.gps_longitude,
        gps_accuracy_meters=inspection.gps_accuracy_meters,
        previous_inspection_date=inspection.previous_inspection_date,
        notes=inspection.notes,
        requires_service=inspection.requires_service,
        requires_replacement=inspection.requires_replacement,
        failure_reason=inspection.failure_reason,
        corrective_action=inspection.corrective_action,
        declared_result=inspection.overall_result,
        photo_refs=tuple(inspection.photo_refs),
        checklist=checklist,
        **checks,
    )
