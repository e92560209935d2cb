
"""Verify every completed inspection of an asset directly against the SQLite store."""
import json, sys
from app import db
from app.keys import load_signer
from fireinspect import InspectionVerifier

def main(db_path, asset_id):
    db.use_database(db_path)
    verifier = InspectionVerifier(db.SqliteInspectionRepository(), load_signer())
    report = verifier.verify_asset(asset_id)
    print(json.dumps(report.to_dict(), indent=2))
    if not report.results:
        print("NOTE: no completed inspections for asset", asset_id)
    if not report.is_valid():
        for result in report.invalid():
            print("FAIL:", result.inspection_id, "-", result.message)
        sys.exit(1)
    print("PASS: inspection chain valid for asset", asset_id)

if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: python tools/verify_asset_chain.py <fireinspect.db> <asset_id>")
        raise SystemExit(2)
    main(sys.argv[1], sys.argv[2])
