"""
Field-level encryption for stored message and summary content.

Each key id derives its own Fernet key from the master key. Rows record the
key id they were written under, so changing the configured key id leaves
older rows readable while the master key is unchanged.
"""

import base64
import os

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

MASTER_KEY_ENV = "MEDIBOT_MASTER_KEY"
KDF_ITERATIONS = 100_000


class EncryptionManager:
    """Seals and opens text content with per-key-id derived Fernet keys."""

    def __init__(self, master_key: str | None = None, key_id: str = "primary_v1"):
        master_key = master_key or os.environ.get(MASTER_KEY_ENV)
        if not master_key:
            raise ValueError(
                f"Encryption requires a master key ({MASTER_KEY_ENV} or database_encryption_key)"
            )

        self._master_key = master_key
        self._fernets: dict[str, Fernet] = {}
        self._current_key_id = key_id
        self._fernet(key_id)

    def _fernet(self, key_id: str) -> Fernet:
        fernet = self._fernets.get(key_id)
        if fernet is None:
            # Key id doubles as the KDF salt, padded to 16 bytes
            salt = key_id.encode("utf-8").ljust(16, b"0")[:16]
            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=32,
                salt=salt,
                iterations=KDF_ITERATIONS,
            )
            derived = base64.urlsafe_b64encode(kdf.derive(self._master_key.encode()))
            fernet = self._fernets[key_id] = Fernet(derived)
        return fernet

    def encrypt(self, plaintext: str) -> tuple[str, str]:
        """Return ``(token, key_id)`` for ``plaintext`` under the current key."""
        token = self._fernet(self._current_key_id).encrypt(plaintext.encode("utf-8"))
        return token.decode("utf-8"), self._current_key_id

    def decrypt(self, token: str, key_id: str) -> str:
        """
        Open a token written under ``key_id``.

        Raises:
            ValueError: The token does not belong to this master key and key id
        """
        try:
            plaintext = self._fernet(key_id).decrypt(token.encode("utf-8"))
        except InvalidToken as e:
            raise ValueError(f"Cannot decrypt content with key {key_id}") from e
        return plaintext.decode("utf-8")
