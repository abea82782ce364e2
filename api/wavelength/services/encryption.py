from cryptography.fernet import Fernet, InvalidToken
from fastapi import HTTPException

from .. import config


class MessageCipher:
    """Symmetric cipher for chat message bodies. Each token carries its own random IV."""

    def __init__(self, key: str | bytes):
        self._fernet = Fernet(key.encode("ascii") if isinstance(key, str) else key)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Message content could not be decrypted") from exc


_cipher: MessageCipher | None = None


def get_message_cipher() -> MessageCipher:
    global _cipher
    if not config.ENCRYPTION_KEY:
        raise HTTPException(status_code=500, detail="Encryption key not configured")
    if _cipher is None:
        _cipher = MessageCipher(config.ENCRYPTION_KEY)
    return _cipher
