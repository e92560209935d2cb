import base64, os, sys, tempfile
import pytest

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Ensure the app package is importable from a source checkout
sys.path.insert(0, ROOT)

# Isolated database and an env-provided signing key, set before app.config is imported
_DATA_DIR = tempfile.mkdtemp(prefix="fireinspect-tests-")
os.environ["FIREINSPECT_DB_PATH"] = os.path.join(_DATA_DIR, "fireinspect.db")
os.environ["FIREINSPECT_SECRET_PROVIDER"] = "env"
os.environ["SIGNING_KEY_ENV"] = "FIREINSPECT_SIGNING_KEY"
os.environ["FIREINSPECT_SIGNING_KEY"] = base64.b64encode(b"service-test-signing-key-0123456789").decode("ascii")
os.environ["LOG_JSON"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

# Initialize app at module load time
from app.main import app, _startup
from app.db import init_db, reset_db

init_db()
_startup()

# Reset database before each test for isolation
@pytest.fixture(autouse=True)
def _reset_db():
    reset_db()
    yield
