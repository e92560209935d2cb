"""Generate a local inspector signing key file."""
import json, os, sys
from datetime import datetime, timezone
from nacl.utils import random as nacl_random
from app.util import b64e

path = sys.argv[1] if len(sys.argv) > 1 else os.getenv("SIGNING_KEY_PATH", "secrets/inspection_signing_key.json")
kid = "inspection-hmac-" + datetime.now(timezone.utc).strftime("%Y%m%d")

os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

secret = nacl_random(32)

with open(path, "w", encoding="utf-8") as f:
    json.dump({"kid": kid, "secret_b64": b64e(secret)}, f, indent=2)
os.chmod(path, 0o600)

print(f"Generated inspector signing key {kid} at {path}.")
