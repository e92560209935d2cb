from fastapi.testclient import TestClient

from app.db import _transaction
from app.main import app

client = TestClient(app)

BASE = "/api/v2/inspections"


def create(asset_id="EXT-0042", inspector_id="inspector-7", **extra):
    r = client.post(f"{BASE}/", json={"asset_id": asset_id, "inspector_id": inspector_id, **extra})
    assert r.status_code == 201
    return r.json()["inspection_id"]


def answer(iid, *items):
    body = {"responses": [{"checklist_item_id": key, "response": value} for key, value in items]}
    r = client.post(f"{BASE}/{iid}/responses", json=body)
    assert r.status_code == 200
    return r.json()


def complete(iid, overall_result="Pass", **extra):
    return client.put(f"{BASE}/{iid}/complete", json={"overall_result": overall_result, **extra})


def full_inspection(asset_id="EXT-0042"):
    iid = create(asset_id, gps_latitude="40.7128", gps_longitude="-74.0060")
    answer(iid, ("is_accessible", "Pass"), ("seal_intact", "Pass"), ("pin_in_place", "Pass"))
    r = complete(iid, notes="Monthly walk-through", signature_material="data:image/png;base64,AAAA")
    assert r.status_code == 200
    return iid, r.json()


def test_full_flow():
    iid, completion = full_inspection()
    assert completion["computed_result"] == "Pass"
    assert completion["previous_hash"] is None
    assert completion["chain_seq"] == 1
    assert len(completion["content_hash"]) == 64

    stored = client.get(f"{BASE}/{iid}").json()
    assert stored["status"] == "Completed"
    assert stored["content_hash"] == completion["content_hash"]
    assert stored["inspector_signature"] == completion["signature"]
    assert stored["location_verified"] is True

    verdict = client.post(f"{BASE}/{iid}/verify").json()
    assert verdict["is_valid"] is True
    assert verdict["content_valid"] and verdict["signature_valid"] and verdict["chain_valid"]


def test_second_inspection_links_to_first():
    _, first = full_inspection()
    _, second = full_inspection()
    assert second["previous_hash"] == first["content_hash"]
    assert second["chain_seq"] == 2


def test_failed_critical_check_overrides_declared_pass():
    iid = create()
    answer(iid, ("seal_intact", "Fail"))
    r = complete(iid, "Pass")
    assert r.status_code == 200
    assert r.json()["computed_result"] == "Fail"


def test_completed_inspection_is_immutable():
    iid, _ = full_inspection()
    assert client.put(f"{BASE}/{iid}", json={"notes": "changed"}).status_code == 409
    assert client.post(f"{BASE}/{iid}/responses", json={"responses": []}).status_code == 409
    assert client.post(f"{BASE}/{iid}/photos", json={"photo_ref": "late.jpg"}).status_code == 409
    assert complete(iid).status_code == 409

    r = client.delete(f"{BASE}/{iid}")
    assert r.status_code == 409
    assert "audit trail" in r.json()["detail"]


def test_edit_while_in_progress():
    iid = create()
    r = client.put(f"{BASE}/{iid}", json={"notes": "Cabinet door sticks", "requires_service": True})
    assert r.status_code == 200
    assert r.json()["notes"] == "Cabinet door sticks"
    assert r.json()["requires_service"] is True

    r = client.post(f"{BASE}/{iid}/photos", json={"photo_ref": "door.jpg"})
    assert r.json()["photo_refs"] == ["door.jpg"]

    r = client.post(f"{BASE}/{iid}/deficiencies", json={
        "deficiency_type": "Cabinet", "severity": "Medium", "description": "Door sticks",
    })
    assert r.status_code == 201
    assert r.json()["severity"] == "Medium"

    responses = client.get(f"{BASE}/{iid}/responses").json()
    assert responses == []


def test_delete_in_progress():
    iid = create()
    r = client.delete(f"{BASE}/{iid}")
    assert r.status_code == 200
    assert r.json()["status"] == "Deleted"
    assert client.get(f"{BASE}/asset/EXT-0042").json() == []


def test_not_found():
    assert client.get(f"{BASE}/does-not-exist").status_code == 404
    assert client.post(f"{BASE}/does-not-exist/verify").status_code == 404
    assert complete("does-not-exist").status_code == 404


def test_invalid_input():
    iid = create()
    r = complete(iid, "Maybe")
    assert r.status_code == 400
    assert r.json()["field"] == "overall_result"

    r = client.post(f"{BASE}/{iid}/responses", json={
        "responses": [{"checklist_item_id": "seal_intact", "response": "Sort of"}]
    })
    assert r.status_code == 400


def test_verify_in_progress_conflicts():
    iid = create()
    assert client.post(f"{BASE}/{iid}/verify").status_code == 409


def test_tampered_row_fails_verification():
    iid, _ = full_inspection()
    with _transaction() as conn:
        conn.execute("UPDATE inspections SET notes='Nothing to see' WHERE inspection_id=?", (iid,))
    verdict = client.post(f"{BASE}/{iid}/verify").json()
    assert verdict["is_valid"] is False
    assert verdict["content_valid"] is False
    assert verdict["signature_valid"] is True


def test_undecodable_row_still_gets_verdict():
    iid, _ = full_inspection()
    with _transaction() as conn:
        conn.execute(
            "UPDATE inspections SET inspection_date='2024-03-01 09:30:00', gps_latitude='forty' "
            "WHERE inspection_id=?",
            (iid,),
        )
    r = client.post(f"{BASE}/{iid}/verify")
    assert r.status_code == 200
    assert r.json()["content_valid"] is False

    stored = client.get(f"{BASE}/{iid}").json()
    assert stored["inspection_date"] == "2024-03-01 09:30:00"
    assert stored["gps_latitude"] == "forty"
    assert client.get(f"{BASE}/stats").json()["completed_inspections"] == 1
    assert client.get(f"{BASE}/inspector/inspector-7", params={"start": "2024-01-01T00:00:00Z"}).status_code == 200


def test_checklist_items():
    items = client.get(f"{BASE}/checklist-items").json()
    assert items["critical_checks"]["seal_intact"] == "Pass"
    assert items["critical_checks"]["has_obstructions"] == "Fail"
    assert items["quantity_items"]["weight"] == "weight_pounds"


def test_non_numeric_checklist_value_rejected():
    iid = create()
    r = client.post(f"{BASE}/{iid}/responses", json={
        "responses": [{"checklist_item_id": "gauge_in_green_zone", "response": "Pass", "value": "NaN"}]
    })
    assert r.status_code in (400, 422)
    assert client.get(f"{BASE}/{iid}/responses").json() == []


def test_asset_chain_verification():
    ids = [full_inspection()[0] for _ in range(3)]
    full_inspection("EXT-0099")

    report = client.get(f"{BASE}/asset/EXT-0042/verify").json()
    assert report["is_valid"] is True
    assert report["inspections_checked"] == 3

    with _transaction() as conn:
        conn.execute("UPDATE inspections SET inspector_id='inspector-x' WHERE inspection_id=?", (ids[1],))
    report = client.get(f"{BASE}/asset/EXT-0042/verify").json()
    assert report["is_valid"] is False


def test_asset_history_order():
    pending = create()
    done, _ = full_inspection()
    history = client.get(f"{BASE}/asset/EXT-0042").json()
    assert [i["inspection_id"] for i in history] == [done, pending]


def test_inspector_history():
    create(inspector_id="inspector-7", inspection_date="2024-01-10T10:00:00Z")
    create(inspector_id="inspector-7", inspection_date="2024-02-10T10:00:00Z")
    create(inspector_id="inspector-8", inspection_date="2024-02-10T10:00:00Z")

    assert len(client.get(f"{BASE}/inspector/inspector-7").json()) == 2
    found = client.get(f"{BASE}/inspector/inspector-7", params={"start": "2024-02-01T00:00:00Z"}).json()
    assert [i["inspection_date"] for i in found] == ["2024-02-10T10:00:00.000000Z"]


def test_stats():
    full_inspection()
    create()
    stats = client.get(f"{BASE}/stats").json()
    assert stats["total_inspections"] == 2
    assert stats["completed_inspections"] == 1
    assert stats["in_progress_inspections"] == 1
    assert stats["pass_rate"] == "100.00"


def test_health_and_request_id():
    r = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert r.status_code == 200
    assert r.headers["X-Request-ID"] == "req-123"
    assert r.json()["status"] == "ok"
    assert r.json()["signing_key_id"] == "env"

    generated = client.get("/health").headers["X-Request-ID"]
    assert generated
