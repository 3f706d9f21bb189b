"""Encrypted key-value repository for CalQ settings

Every persisted value (OAuth client secret and tokens, SMTP password,
calendar selection, reminder times) is stored as JSON encrypted with Fernet.

SECURITY:
- Values encrypted with Fernet (symmetric encryption)
- Key taken from CALQ_ENCRYPTION_KEY, or generated once into a key file in
  the data directory (mode 0600) for desktop installs
- Plaintext values never reach the log
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

from calq import config
from calq.infrastructure.database import retry_on_db_lock
from calq.observability.logging import get_logger
from calq.storage import BaseRepository

logger = get_logger(__name__)


class CredentialEncryptionError(Exception):
    """Raised when a stored value cannot be encrypted or decrypted"""


def load_or_create_key(key_path: Path = config.KEY_PATH) -> bytes:
    """
    Resolve the Fernet key for the settings store

    Returns:
        CALQ_ENCRYPTION_KEY if set, else the contents of key_path

    Side Effects:
        - Generates and writes key_path (mode 0600) when it does not exist
    """
    env_key = os.getenv("CALQ_ENCRYPTION_KEY")
    if env_key:
        return env_key.encode()

    if key_path.exists():
        return key_path.read_bytes().strip()

    key_path.parent.mkdir(parents=True, exist_ok=True)
    key = Fernet.generate_key()
    key_path.write_bytes(key)
    os.chmod(key_path, 0o600)
    logger.info("Generated new settings encryption key at %s", key_path)
    return key


class SettingsRepository(BaseRepository):
    """
    get / set / delete for named settings values

    Reads of an absent key return the caller's default, never raise.
    """

    def __init__(
        self,
        db_path: Path | str | None = None,
        encryption_key: bytes | str | None = None,
    ) -> None:
        super().__init__("settings", db_path)
        self._cipher = self._get_cipher(encryption_key)

    def _get_cipher(self, encryption_key: bytes | str | None) -> Fernet:
        key = encryption_key if encryption_key is not None else load_or_create_key()
        if isinstance(key, str):
            key = key.encode()
        try:
            return Fernet(key)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid encryption key format: {e}") from e

    def _encrypt(self, value: Any) -> str:
        try:
            return self._cipher.encrypt(json.dumps(value).encode()).decode()
        except (TypeError, ValueError) as e:
            raise CredentialEncryptionError(f"Encryption failed: {e}") from e

    def _decrypt(self, encrypted_value: str) -> Any:
        try:
            return json.loads(self._cipher.decrypt(encrypted_value.encode()).decode())
        except (InvalidToken, ValueError) as e:
            logger.error("Failed to decrypt stored setting")
            raise CredentialEncryptionError("Decryption failed (wrong key or corrupt value)") from e

    def get(self, key: str, default: Any = None) -> Any:
        """
        Read a setting

        Raises:
            CredentialEncryptionError: If the stored value cannot be decrypted
        """
        row = self.query_one(
            f"SELECT encrypted_value FROM {self.table_name} WHERE key = ?", (key,)
        )
        if row is None:
            return default
        return self._decrypt(row["encrypted_value"])

    @retry_on_db_lock()
    def set(self, key: str, value: Any) -> None:
        """
        Store or replace a setting

        Side Effects:
            - Upserts one row in the settings table
        """
        self.execute(
            f"""
            INSERT INTO {self.table_name} (key, encrypted_value, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(key) DO UPDATE SET
                encrypted_value = excluded.encrypted_value,
                updated_at = CURRENT_TIMESTAMP
            """,
            (key, self._encrypt(value)),
        )
        logger.debug("Stored setting: %s", key)

    @retry_on_db_lock()
    def delete(self, key: str) -> bool:
        """
        Remove a setting

        Returns:
            True if a row was deleted
        """
        deleted = self.execute(f"DELETE FROM {self.table_name} WHERE key = ?", (key,)) > 0
        if deleted:
            logger.info("Deleted setting: %s", key)
        return deleted

