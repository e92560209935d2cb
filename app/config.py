"""
Configuration module for the fire inspection service.

Centralizes all configuration with environment variable support
and startup validation.
"""

import os
from pathlib import Path
from typing import Dict

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("FIREINSPECT_ENV", "dev")  # dev|stage|prod

# Storage
DB_PATH = os.getenv("FIREINSPECT_DB_PATH", "data/fireinspect.db")

# HTTP server
HOST = os.getenv("FIREINSPECT_HOST", "127.0.0.1")
PORT = int(os.getenv("FIREINSPECT_PORT", "8000"))

# Inspector signing key
SECRET_PROVIDER = os.getenv("FIREINSPECT_SECRET_PROVIDER", "file")  # file|env|aws_secrets_manager
SIGNING_KEY_PATH = os.getenv("SIGNING_KEY_PATH", "secrets/inspection_signing_key.json")
SIGNING_KEY_ENV = os.getenv("SIGNING_KEY_ENV", "FIREINSPECT_SIGNING_KEY")
AWS_SECRET_ID = os.getenv("AWS_SECRET_ID", "")
AWS_REGION = os.getenv("AWS_REGION", "")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "true").lower() in ("1", "true", "yes")
LOG_FILE = os.getenv("LOG_FILE") or None

SECRET_PROVIDERS = ("file", "env", "aws_secrets_manager")


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Validate that the configured secret source is present.
    Returns dict of check -> ok.
    """
    checks = {"secret_provider": SECRET_PROVIDER in SECRET_PROVIDERS}

    if SECRET_PROVIDER == "file":
        checks["signing_key"] = Path(SIGNING_KEY_PATH).exists()
    elif SECRET_PROVIDER == "env":
        checks["signing_key"] = bool(os.getenv(SIGNING_KEY_ENV))
    elif SECRET_PROVIDER == "aws_secrets_manager":
        checks["signing_key"] = bool(AWS_SECRET_ID)

    return checks


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("FIREINSPECT_DEBUG", "").lower() in ("1", "true", "yes")
