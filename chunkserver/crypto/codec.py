"""ChaCha20-Poly1305 framing for chunk payloads.

A frame is ``nonce (12 bytes) || ciphertext || tag (16 bytes)`` where the
ciphertext is as long as the plaintext. Associated data is always empty.
"""

import logging
import secrets
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from chunkserver.bootstrap.config import FRAME_OVERHEAD, KEY_LENGTH, NONCE_LENGTH
from chunkserver.domain.correlation_id import CorrelationLoggerAdapter
from chunkserver.domain.errors import ChunkError, DecryptFailure, ErrorKind

CODEC_LOGGER = CorrelationLoggerAdapter(logging.getLogger("chunk_server.codec"), {})

ENCRYPTION_TYPE = "ChaCha20-Poly1305"
NO_ENCRYPTION = "none"


def generate_key() -> bytes:
    """Return a fresh random 32-byte ChaCha20-Poly1305 key."""
    return ChaCha20Poly1305.generate_key()


class ChunkCodec:
    """Encrypts outgoing chunks and verifies incoming ones.

    While disabled both directions are identity transforms. A codec asked to
    encrypt with an unusable key is left in a failed state where every
    transform raises, so no plaintext ever crosses the wire by accident.
    """

    def __init__(self) -> None:
        self._enabled = False
        self._ready = True
        self._cipher: Optional[ChaCha20Poly1305] = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def encryption_type(self) -> str:
        if self._enabled and self._ready:
            return ENCRYPTION_TYPE
        return NO_ENCRYPTION

    def configure(self, enabled: bool, key: Optional[bytes]) -> bool:
        """Switch encryption on or off; return whether the codec is usable."""
        if not enabled:
            self._enabled = False
            self._ready = True
            self._cipher = None
            return True

        self._enabled = True
        if key is None or len(key) != KEY_LENGTH:
            self._ready = False
            self._cipher = None
            CODEC_LOGGER.error(
                "Encryption requested with an unusable key",
                extra={
                    "event": "encryption_config_failed",
                    "length": 0 if key is None else len(key),
                },
            )
            return False

        self._cipher = ChaCha20Poly1305(key)
        self._ready = True
        return True

    def _require_cipher(self) -> ChaCha20Poly1305:
        if self._cipher is None:
            raise ChunkError(
                ErrorKind.ENCRYPTION_CONFIG_FAILURE, "encryption key not configured"
            )
        return self._cipher

    def encrypt(self, plaintext: bytes) -> bytes:
        """Frame plaintext under a fresh random nonce."""
        if not self._enabled:
            return plaintext
        cipher = self._require_cipher()
        nonce = secrets.token_bytes(NONCE_LENGTH)
        return nonce + cipher.encrypt(nonce, plaintext, b"")

    def decrypt(self, frame: bytes) -> bytes:
        """Verify and open a frame, raising DecryptFailure on any mismatch."""
        if not self._enabled:
            return frame
        cipher = self._require_cipher()
        if len(frame) < FRAME_OVERHEAD:
            raise DecryptFailure(f"frame of {len(frame)} bytes is truncated")
        nonce, sealed = frame[:NONCE_LENGTH], frame[NONCE_LENGTH:]
        try:
            return cipher.decrypt(nonce, sealed, b"")
        except InvalidTag as exc:
            raise DecryptFailure("authentication tag mismatch") from exc
