"""
Key management module for the fire inspection service.

Provides secret providers for the inspector signing key: a local JSON key
file, an environment variable, or AWS Secrets Manager. The key is loaded
once at startup; any failure is fatal.
"""

import binascii
import json
import os
import threading
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from fireinspect import InspectorSigner, SigningUnavailable

from . import config
from .util import b64d


class SecretProvider(ABC):
    """Abstract source of the inspector signing key."""

    @abstractmethod
    def get_signing_key(self) -> Tuple[str, bytes]:
        """
        Return (kid, secret bytes).

        Raises:
            SigningUnavailable: If the key cannot be loaded
        """
        pass


def _decode_document(raw, default_kid: str, source: str) -> Tuple[str, bytes]:
    """Decode a {"kid", "secret_b64"} key document."""
    if not isinstance(raw, dict):
        raise SigningUnavailable(f"Signing key in {source} must be a JSON object")
    return _decode_secret(raw.get("kid", default_kid), raw.get("secret_b64"), source)


def _decode_secret(kid: str, secret_b64: Optional[str], source: str) -> Tuple[str, bytes]:
    if not secret_b64:
        raise SigningUnavailable(f"No signing key found in {source}")
    if not isinstance(secret_b64, str):
        raise SigningUnavailable(f"Signing key in {source} is not a base64 string")
    try:
        return kid, b64d(secret_b64.strip())
    except (binascii.Error, ValueError) as e:
        raise SigningUnavailable(f"Signing key in {source} is not valid base64") from e


class FileSecretProvider(SecretProvider):
    """
    Key stored as JSON {"kid": ..., "secret_b64": ...} on local disk.

    The file is read once and cached.
    """

    def __init__(self, signing_key_path: str):
        self._path = signing_key_path
        self._lock = threading.Lock()
        self._cached: Optional[Tuple[str, bytes]] = None

    def get_signing_key(self) -> Tuple[str, bytes]:
        with self._lock:
            if self._cached is None:
                try:
                    with open(self._path, "r", encoding="utf-8") as f:
                        raw = json.load(f)
                except (OSError, ValueError) as e:
                    raise SigningUnavailable(f"Cannot read signing key file {self._path}: {e}") from e
                self._cached = _decode_document(raw, "file", self._path)
            return self._cached


class EnvSecretProvider(SecretProvider):
    """Base64 key in an environment variable."""

    def __init__(self, env_var: str, kid: str = "env"):
        self._env_var = env_var
        self._kid = kid

    def get_signing_key(self) -> Tuple[str, bytes]:
        return _decode_secret(self._kid, os.getenv(self._env_var), f"${self._env_var}")


class AwsSecretsManagerProvider(SecretProvider):
    """
    Key held in AWS Secrets Manager.

    The secret string is either the same JSON document as the key file or
    a bare base64 value.

    Docs: https://docs.aws.amazon.com/secretsmanager/latest/apireference/API_GetSecretValue.html
    """

    def __init__(self, secret_id: str, region: Optional[str] = None):
        self._secret_id = secret_id
        self._region = region
        self._client = None

    def _get_client(self):
        """Lazy-load boto3 client."""
        if self._client is None:
            try:
                import boto3
            except ImportError as e:
                raise SigningUnavailable(
                    "boto3 required for AWS Secrets Manager. Install with: pip install boto3"
                ) from e
            self._client = boto3.client("secretsmanager", region_name=self._region or None)
        return self._client

    def get_signing_key(self) -> Tuple[str, bytes]:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            resp = self._get_client().get_secret_value(SecretId=self._secret_id)
        except (BotoCoreError, ClientError) as e:
            raise SigningUnavailable(f"Cannot fetch secret {self._secret_id}: {e}") from e

        secret = resp.get("SecretString") or ""
        if secret.lstrip().startswith("{"):
            try:
                raw = json.loads(secret)
            except ValueError as e:
                raise SigningUnavailable(f"Secret {self._secret_id} is not valid JSON: {e}") from e
            return _decode_document(raw, self._secret_id, self._secret_id)
        return _decode_secret(self._secret_id, secret, self._secret_id)


def get_secret_provider(
    provider_type: str = "file",
    signing_key_path: str = "secrets/inspection_signing_key.json",
    signing_key_env: str = "FIREINSPECT_SIGNING_KEY",
    aws_secret_id: Optional[str] = None,
    aws_region: Optional[str] = None
) -> SecretProvider:
    """
    Factory function to create the configured secret provider.

    Args:
        provider_type: "file", "env" or "aws_secrets_manager"
        signing_key_path: Path to signing key JSON (file provider)
        signing_key_env: Env var holding a base64 key (env provider)
        aws_secret_id: Secret name or ARN (AWS provider)
        aws_region: AWS region (AWS provider)
    """
    if provider_type == "aws_secrets_manager":
        if not aws_secret_id:
            raise SigningUnavailable("AWS_SECRET_ID required for aws_secrets_manager provider")
        return AwsSecretsManagerProvider(aws_secret_id, region=aws_region)
    if provider_type == "env":
        return EnvSecretProvider(signing_key_env)
    if provider_type == "file":
        return FileSecretProvider(signing_key_path)
    raise SigningUnavailable(f"Unknown secret provider {provider_type!r}")


def load_signer(provider: Optional[SecretProvider] = None) -> InspectorSigner:
    """
    Build the process-wide inspector signer from configuration.

    Raises:
        SigningUnavailable: Missing, unreadable or too-short key
    """
    if provider is None:
        provider = get_secret_provider(
            provider_type=config.SECRET_PROVIDER,
            signing_key_path=config.SIGNING_KEY_PATH,
            signing_key_env=config.SIGNING_KEY_ENV,
            aws_secret_id=config.AWS_SECRET_ID,
            aws_region=config.AWS_REGION,
        )
    kid, key = provider.get_signing_key()
    return InspectorSigner(key, key_id=kid)
