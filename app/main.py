import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from fireinspect import (
    ChainConflict,
    InspectionLifecycle,
    InspectionVerifier,
    InvalidInput,
    InvalidState,
    NotFound,
    SerializationError,
    SigningUnavailable,
    inspection_stats,
)
from fireinspect.canonicalization import utc_now
from fireinspect.content import CHECKLIST_FIELDS, QUANTITY_ITEMS

from . import config
from .db import SqliteInspectionRepository, get_db_stats, init_db
from .keys import load_signer
from .logging_config import audit_log, configure_logging, get_request_id, set_request_id
from .models import (
    AddPhotoRequest,
    CompleteInspectionRequest,
    CreateInspectionRequest,
    DeficiencyRequest,
    SaveResponsesRequest,
    UpdateInspectionRequest,
    deficiency_view,
    inspection_view,
    response_view,
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Fire Inspection Integrity Service",
    docs_url=None if config.is_production() else "/docs",
    redoc_url=None if config.is_production() else "/redoc",
)
router = APIRouter(prefix="/api/v2/inspections")

REPOSITORY = SqliteInspectionRepository()
SIGNER = None
LIFECYCLE: Optional[InspectionLifecycle] = None
VERIFIER: Optional[InspectionVerifier] = None


@app.on_event("startup")
def _startup():
    global SIGNER, LIFECYCLE, VERIFIER
    level = "DEBUG" if config.is_debug() else config.LOG_LEVEL
    configure_logging(level, json_format=config.LOG_JSON, log_file=config.LOG_FILE)
    failed = [name for name, ok in config.validate_config().items() if not ok]
    if failed:
        logger.warning("Configuration checks failed: %s", ", ".join(failed))
    init_db()
    try:
        SIGNER = load_signer()
    except SigningUnavailable as e:
        audit_log.security_event("SIGNING_KEY_UNAVAILABLE", severity="critical", reason=str(e))
        raise
    LIFECYCLE = InspectionLifecycle(REPOSITORY, SIGNER)
    VERIFIER = InspectionVerifier(REPOSITORY, SIGNER, chain=LIFECYCLE.chain)
    logger.info("Inspection service started (env=%s, key=%s)", config.ENV, SIGNER.key_id)


@app.middleware("http")
async def _request_context(request: Request, call_next):
    request_id = set_request_id(request.headers.get("X-Request-ID"))
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================
# Error mapping
# ============================================================

@app.exception_handler(NotFound)
async def _not_found(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidState)
async def _invalid_state(request: Request, exc: InvalidState):
    audit_log.state_violation(exc.inspection_id, f"{request.method} {request.url.path}", exc.status, str(exc))
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(InvalidInput)
async def _invalid_input(request: Request, exc: InvalidInput):
    return JSONResponse(status_code=400, content={"detail": str(exc), "field": exc.field})


@app.exception_handler(ChainConflict)
async def _chain_conflict(request: Request, exc: ChainConflict):
    audit_log.chain_conflict(exc.asset_id, exc.chain_seq)
    return JSONResponse(status_code=503, content={"detail": str(exc)}, headers={"Retry-After": "1"})


@app.exception_handler(SerializationError)
async def _serialization_error(request: Request, exc: SerializationError):
    logger.error("Inspection content could not be serialized: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": f"Content serialization failed: {exc}", "request_id": get_request_id()},
    )


# ============================================================
# Inspections
# ============================================================

@router.get("/stats")
def stats():
    return inspection_stats(REPOSITORY.list_all(), utc_now()).to_dict()


@router.get("/checklist-items")
def checklist_items():
    return {
        "critical_checks": {key: ("Pass" if passing else "Fail") for key, passing in CHECKLIST_FIELDS.items()},
        "quantity_items": dict(QUANTITY_ITEMS),
    }


@router.post("/", status_code=201)
def create_inspection(req: CreateInspectionRequest):
    inspection = LIFECYCLE.create(**req.model_dump())
    audit_log.inspection_created(inspection.inspection_id, inspection.asset_id, inspection.inspector_id)
    return inspection_view(inspection)


@router.get("/asset/{asset_id}")
def asset_history(asset_id: str):
    return [inspection_view(i) for i in LIFECYCLE.history(asset_id)]


@router.get("/asset/{asset_id}/verify")
def verify_asset(asset_id: str):
    report = VERIFIER.verify_asset(asset_id)
    for result in report.results:
        audit_log.verification_result(result.inspection_id, result.is_valid(), result.failed_checks())
    return report.to_dict()


@router.get("/inspector/{inspector_id}")
def inspector_history(inspector_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None):
    return [inspection_view(i) for i in LIFECYCLE.by_inspector(inspector_id, start=start, end=end)]


@router.get("/{inspection_id}")
def get_inspection(inspection_id: str):
    return inspection_view(LIFECYCLE.get(inspection_id))


@router.put("/{inspection_id}")
def update_inspection(inspection_id: str, req: UpdateInspectionRequest):
    return inspection_view(LIFECYCLE.update(inspection_id, req.to_patch()))


@router.delete("/{inspection_id}")
def delete_inspection(inspection_id: str):
    inspection = LIFECYCLE.delete(inspection_id)
    audit_log.inspection_deleted(inspection_id)
    return {"inspection_id": inspection_id, "status": inspection.status.value}


@router.post("/{inspection_id}/responses")
def save_responses(inspection_id: str, req: SaveResponsesRequest):
    inspection = LIFECYCLE.record_checklist_responses(
        inspection_id, [r.to_response() for r in req.responses]
    )
    return {
        "inspection_id": inspection_id,
        "responses": [response_view(inspection.responses[k]) for k in sorted(inspection.responses)],
    }


@router.get("/{inspection_id}/responses")
def get_responses(inspection_id: str):
    return [response_view(r) for r in LIFECYCLE.responses(inspection_id)]


@router.post("/{inspection_id}/photos")
def add_photo(inspection_id: str, req: AddPhotoRequest):
    inspection = LIFECYCLE.add_photo(inspection_id, req.photo_ref)
    return {"inspection_id": inspection_id, "photo_refs": list(inspection.photo_refs)}


@router.post("/{inspection_id}/deficiencies", status_code=201)
def record_deficiency(inspection_id: str, req: DeficiencyRequest):
    return deficiency_view(LIFECYCLE.record_deficiency(inspection_id, **req.model_dump()))


@router.put("/{inspection_id}/complete")
def complete_inspection(inspection_id: str, req: CompleteInspectionRequest):
    result = LIFECYCLE.complete(
        inspection_id,
        req.overall_result,
        notes=req.notes,
        signature_material=req.signature_material,
    )
    audit_log.inspection_completed(
        inspection_id,
        result.asset_id,
        result.content_hash,
        result.previous_hash,
        result.signature,
        result.computed_result,
        result.chain_seq,
    )
    return result.to_dict()


@router.post("/{inspection_id}/verify")
def verify_inspection(inspection_id: str):
    result = VERIFIER.verify(inspection_id)
    audit_log.verification_result(inspection_id, result.is_valid(), result.failed_checks())
    return result.to_dict()


app.include_router(router)


@app.get("/health")
def health():
    return {
        "status": "ok",
        "env": config.ENV,
        "signing_key_id": SIGNER.key_id if SIGNER else None,
        "config": config.validate_config(),
        "db": get_db_stats(),
    }
