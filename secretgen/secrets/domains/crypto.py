"""
AES-256-GCM sealing of generated secrets.

The master key is 32 random bytes. Each sealed file holds a unique 12-byte
nonce followed by the ciphertext and tag.
"""
import base64
import binascii
import logging
import os
import secrets
import shlex
import stat
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import ConfigError, DecryptionFailure, EncryptionFailure, PersistFailure
from .gcp_client import GCPSecretClient

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16
DEFAULT_KEY_PATH = ".secretgen/master.key"
MASTER_KEY_ENV = "SECRETGEN_MASTER_KEY"


def init_master_key(key_path: Path) -> Path:
    """Generate a new master key file. Returns the path. Skips if it exists."""
    key_path = Path(key_path)
    if key_path.exists():
        return key_path
    key_path.parent.mkdir(parents=True, exist_ok=True)
    key_path.write_bytes(secrets.token_bytes(KEY_SIZE))
    key_path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 600
    logger.info(f"Created master key at {key_path}")
    return key_path


def _decode_key(value: str, source: str) -> bytes:
    try:
        key = base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigError(f"Master key from {source} is not valid base64: {e}")
    if len(key) != KEY_SIZE:
        raise ConfigError(f"Master key from {source} must be {KEY_SIZE} bytes, got {len(key)}")
    return key


def key_path_from_config(root: Path, settings: Dict[str, Any]) -> Path:
    return Path(root) / settings.get("path", DEFAULT_KEY_PATH)


def load_master_key(root: Path, settings: Optional[Dict[str, Any]] = None) -> bytes:
    """
    Load the master key.

    Priority order:
    1. SECRETGEN_MASTER_KEY environment variable (base64)
    2. GCP Secret Manager, when master_key.source is 'gcp'
    3. Key file at master_key.path (default .secretgen/master.key)

    Raises:
        ConfigError: If the key cannot be found or has the wrong size
    """
    settings = settings or {}

    env_value = os.getenv(MASTER_KEY_ENV)
    if env_value:
        logger.debug(f"Using master key from {MASTER_KEY_ENV}")
        return _decode_key(env_value, MASTER_KEY_ENV)

    source = settings.get("source", "file")

    if source == "gcp":
        secret_name = settings.get("secret_name")
        if not secret_name:
            raise ConfigError(
                "Missing 'master_key.secret_name' in config\n"
                "Required format:\n"
                "master_key:\n"
                "  source: gcp\n"
                "  secret_name: SECRETGEN_MASTER_KEY\n"
                "  project_id: your-project-id"
            )
        client = GCPSecretClient(project_id=settings.get("project_id"))
        project_id = client.get_project_id()
        if not project_id:
            raise ConfigError("Cannot fetch master key from GCP without a project ID")
        value = client.fetch_secret(secret_name, project_id)
        if not value:
            raise ConfigError(f"Master key secret '{secret_name}' not found in GCP project {project_id}")
        return _decode_key(value, f"GCP secret {secret_name}")

    if source != "file":
        raise ConfigError(
            f"Unsupported master key source: {source}\n"
            f"Only 'file' and 'gcp' are supported."
        )

    key_path = key_path_from_config(root, settings)
    if not key_path.exists():
        raise ConfigError(
            f"Master key not found at {key_path}. "
            "Run 'secretgen init-key' to generate one."
        )
    key = key_path.read_bytes()
    if len(key) != KEY_SIZE:
        raise ConfigError(f"Master key must be {KEY_SIZE} bytes, got {len(key)}")
    return key


def decrypt_command() -> str:
    """Shell command prefix that prints the plaintext of a sealed file given as argument."""
    return shlex.join([sys.executable, "-m", "secretgen.cli.main", "decrypt"])


class Vault:
    """Seals and unseals secret payloads with the master key."""

    def __init__(self, master_key: bytes):
        if len(master_key) != KEY_SIZE:
            raise ValueError(f"Master key must be {KEY_SIZE} bytes, got {len(master_key)}")
        self._aesgcm = AESGCM(master_key)

    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypt plaintext. Returns nonce (12 bytes) + ciphertext + tag (16 bytes)."""
        nonce = secrets.token_bytes(NONCE_SIZE)
        return nonce + self._aesgcm.encrypt(nonce, plaintext, None)

    def decrypt(self, data: bytes) -> bytes:
        """Decrypt nonce + ciphertext + tag back to plaintext."""
        if len(data) < NONCE_SIZE + TAG_SIZE:
            raise ValueError("Encrypted data too short")
        return self._aesgcm.decrypt(data[:NONCE_SIZE], data[NONCE_SIZE:], None)

    def encrypt_to(self, path: Path, plaintext: bytes) -> None:
        """
        Seal plaintext and write it to path, replacing previous content.

        Raises:
            EncryptionFailure: If sealing fails
            PersistFailure: If the file cannot be written
        """
        try:
            sealed = self.encrypt(plaintext)
        except Exception as e:
            raise EncryptionFailure(f"Failed to encrypt secret for {path}: {e}")

        try:
            path = Path(path)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(sealed)
        except OSError as e:
            raise PersistFailure(f"Failed to write encrypted secret to {path}: {e}")

    def decrypt_file(self, path: Path) -> bytes:
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            raise DecryptionFailure(f"Cannot read encrypted secret {path}: {e}")
        try:
            return self.decrypt(data)
        except (InvalidTag, ValueError):
            raise DecryptionFailure(f"Cannot decrypt {path}: wrong master key or corrupted file")


def open_vault(root: Path, settings: Optional[Dict[str, Any]] = None) -> Vault:
    return Vault(load_master_key(root, settings))
