"""Request models and response views for the inspection API."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from fireinspect import (
    ChecklistResponse,
    Deficiency,
    Inspection,
    InspectionPatch,
    format_timestamp,
)


class CreateInspectionRequest(BaseModel):
    asset_id: str
    inspector_id: str
    inspection_type: str = "Monthly"
    template_id: Optional[str] = None
    inspection_date: Optional[datetime] = None
    scheduled_date: Optional[datetime] = None
    gps_latitude: Optional[Decimal] = None
    gps_longitude: Optional[Decimal] = None
    gps_accuracy_meters: Optional[Decimal] = None
    notes: Optional[str] = None


class UpdateInspectionRequest(BaseModel):
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

    def to_patch(self) -> InspectionPatch:
        return InspectionPatch(**self.model_dump())


class ChecklistResponseIn(BaseModel):
    """
    One checklist answer.

    checklist_item_id must be one of the fixed keys listed by
    GET /api/v2/inspections/checklist-items for the answer to count towards
    the computed result. Other keys are recorded and attested only.
    """
    checklist_item_id: str
    response: str
    comment: Optional[str] = None
    value: Optional[Decimal] = None
    photo_id: Optional[str] = None

    def to_response(self) -> ChecklistResponse:
        return ChecklistResponse(**self.model_dump())


class SaveResponsesRequest(BaseModel):
    """Upsert by checklist_item_id; see ChecklistResponseIn for the key set."""
    responses: List[ChecklistResponseIn] = Field(default_factory=list)


class AddPhotoRequest(BaseModel):
    photo_ref: str


class DeficiencyRequest(BaseModel):
    deficiency_type: str
    severity: str
    description: str
    action_required: Optional[str] = None
    photo_ids: List[str] = Field(default_factory=list)


class CompleteInspectionRequest(BaseModel):
    overall_result: str
    notes: Optional[str] = None
    signature_material: Optional[str] = None


# ============================================================
# Response views
# ============================================================

def _ts(value: Optional[datetime]) -> Optional[str]:
    # undecodable stored values arrive as raw text
    if not isinstance(value, datetime):
        return value
    return format_timestamp(value)


def _num(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def response_view(r: ChecklistResponse) -> Dict[str, Any]:
    return {
        "checklist_item_id": r.checklist_item_id,
        "response": r.response,
        "comment": r.comment,
        "value": _num(r.value),
        "photo_id": r.photo_id,
        "recorded_at": _ts(r.recorded_at),
    }


def deficiency_view(d: Deficiency) -> Dict[str, Any]:
    return {
        "deficiency_id": d.deficiency_id,
        "deficiency_type": d.deficiency_type,
        "severity": d.severity,
        "description": d.description,
        "action_required": d.action_required,
        "photo_ids": list(d.photo_ids),
        "created_at": _ts(d.created_at),
    }


def inspection_view(inspection: Inspection) -> Dict[str, Any]:
    return {
        "inspection_id": inspection.inspection_id,
        "asset_id": inspection.asset_id,
        "inspector_id": inspection.inspector_id,
        "inspection_type": inspection.inspection_type,
        "template_id": inspection.template_id,
        "status": inspection.status.value,
        "inspection_date": _ts(inspection.inspection_date),
        "scheduled_date": _ts(inspection.scheduled_date),
        "gps_latitude": _num(inspection.gps_latitude),
        "gps_longitude": _num(inspection.gps_longitude),
        "gps_accuracy_meters": _num(inspection.gps_accuracy_meters),
        "location_verified": inspection.location_verified,
        "notes": inspection.notes,
        "previous_inspection_date": inspection.previous_inspection_date,
        "requires_service": inspection.requires_service,
        "requires_replacement": inspection.requires_replacement,
        "failure_reason": inspection.failure_reason,
        "corrective_action": inspection.corrective_action,
        "photo_refs": list(inspection.photo_refs),
        "responses": [response_view(inspection.responses[k]) for k in sorted(inspection.responses)],
        "deficiencies": [deficiency_view(d) for d in inspection.deficiencies],
        "overall_result": inspection.overall_result,
        "computed_result": inspection.computed_result,
        "content_hash": inspection.content_hash,
        "previous_hash": inspection.previous_hash,
        "inspector_signature": inspection.inspector_signature,
        "signed_at": _ts(inspection.signed_at),
        "completed_at": _ts(inspection.completed_at),
        "chain_seq": inspection.chain_seq,
        "created_at": _ts(inspection.created_at),
        "modified_at": _ts(inspection.modified_at),
    }
