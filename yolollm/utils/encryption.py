"""
Local at-rest encryption for stored secrets such as the API key.
"""

from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from .logging_config import get_logger

logger = get_logger(__name__)


class LocalEncryptionError(Exception):
    """Custom exception for local encryption errors."""
    pass


class LocalEncryptionProvider:
    """Fernet-based encryption keyed by a locally configured secret."""

    def __init__(self, key: str):
        """
        Initialize the provider.

        Args:
            key: URL-safe base64-encoded 32-byte Fernet key

        Raises:
            LocalEncryptionError: If the key is malformed
        """
        try:
            self._fernet = Fernet(key.encode('utf-8') if isinstance(key, str) else key)
        except (ValueError, TypeError) as e:
            raise LocalEncryptionError(f'Invalid local encryption key: {e}')

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode('utf-8')

    def encrypt(self, value: str) -> str:
        return self._fernet.encrypt(value.encode('utf-8')).decode('utf-8')

    def decrypt(self, value: str) -> str:
        """Decrypt a value produced by encrypt.

        Raises:
            LocalEncryptionError: If the value is not a valid token for this key
        """
        try:
            return self._fernet.decrypt(value.encode('utf-8')).decode('utf-8')
        except (InvalidToken, ValueError) as e:
            raise LocalEncryptionError(f'Failed to decrypt value: {e}')


def create_encryption_provider(key: Optional[str]) -> Optional[LocalEncryptionProvider]:
    """Build a provider from the configured key, or None when no usable key is set."""
    if not key:
        return None
    try:
        return LocalEncryptionProvider(key)
    except LocalEncryptionError as e:
        logger.warning(f'Ignoring local encryption key: {e}')
        return None
