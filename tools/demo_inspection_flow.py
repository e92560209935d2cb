
import json, requests

BASE = "http://127.0.0.1:8000/api/v2/inspections"

created = requests.post(BASE + "/", json={
    "asset_id": "EXT-DEMO-001",
    "inspector_id": "inspector-demo",
    "inspection_type": "Monthly",
    "gps_latitude": "40.7128000",
    "gps_longitude": "-74.0060000",
    "gps_accuracy_meters": "4.50",
}).json()
iid = created["inspection_id"]
print("Created:", iid)

checks = ["is_accessible", "seal_intact", "pin_in_place", "nozzle_clear", "gauge_in_green_zone"]
responses = [{"checklist_item_id": c, "response": "Pass"} for c in checks]
responses[-1]["value"] = "150.00"
print("Responses:", requests.post(f"{BASE}/{iid}/responses", json={"responses": responses}).status_code)

completion = requests.put(f"{BASE}/{iid}/complete", json={"overall_result": "Pass", "notes": "Demo run"}).json()
print("Completion:", json.dumps(completion, indent=2))

verdict = requests.post(f"{BASE}/{iid}/verify").json()
print("Verification:", json.dumps(verdict, indent=2))

resp = requests.put(f"{BASE}/{iid}", json={"notes": "edited after completion"})
print("Edit after completion:", resp.status_code, resp.text)

print("Asset chain:", json.dumps(requests.get(BASE + "/asset/EXT-DEMO-001/verify").json(), indent=2))
