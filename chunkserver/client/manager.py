"""Client side of the chunk protocol.

Mirrors what the companion web client does: encrypt before PUT, decrypt
after GET, and walk whole files one chunk at a time.
"""

import base64
import logging
import os
import urllib.parse
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import requests

from chunkserver.crypto.codec import ENCRYPTION_TYPE, ChunkCodec, generate_key
from chunkserver.domain.correlation_id import CorrelationLoggerAdapter
from chunkserver.domain.errors import ChunkError

CLIENT_LOGGER = CorrelationLoggerAdapter(logging.getLogger("chunk_server.client"), {})

DEFAULT_TIMEOUT = 30


def generate_key_base64() -> str:
    """Create a key in the base64 form passed as the ``key`` start-up option."""
    return base64.b64encode(generate_key()).decode("ascii")


class ChunkClient:
    """Talks to a running chunk server described by its start-up result."""

    def __init__(
        self,
        server_info: Mapping[str, Any],
        key: Optional[bytes] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = server_info["baseUrl"]
        self.auth_token = server_info["authToken"]
        self.chunk_size = int(server_info["chunkSize"])
        if not self.base_url or self.chunk_size <= 0:
            raise ValueError("server did not start; no base URL or chunk size")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._codec = ChunkCodec()
        encrypted = server_info.get("encryptionType") == ENCRYPTION_TYPE
        if not self._codec.configure(encrypted, key):
            raise ValueError("server expects encryption but no valid key was given")

    def _url(self, path: str, **params: int) -> str:
        url = self.base_url + urllib.parse.quote(path)
        if params:
            url += "?" + urllib.parse.urlencode(params)
        return url

    def append_chunk(self, path: str, data: bytes) -> bool:
        """Append one chunk to the remote file; True only on 204."""
        try:
            payload = self._codec.encrypt(data)
            response = self._session.put(
                self._url(path),
                data=payload,
                headers={"authorization": self.auth_token},
                timeout=self.timeout,
            )
        except (requests.RequestException, ChunkError) as error:
            CLIENT_LOGGER.warning(
                "Chunk upload failed",
                extra={"event": "client_put_failed", "error_type": type(error).__name__},
            )
            return False
        return response.status_code == 204

    def read_chunk(self, path: str, offset: int, length: int) -> Optional[bytes]:
        """Fetch and open one chunk; None on any non-200 or decrypt failure."""
        try:
            response = self._session.get(
                self._url(path, o=offset, l=length),
                headers={"authorization": self.auth_token},
                timeout=self.timeout,
            )
            if response.status_code != 200:
                return None
            return self._codec.decrypt(response.content)
        except (requests.RequestException, ChunkError) as error:
            CLIENT_LOGGER.warning(
                "Chunk download failed",
                extra={"event": "client_get_failed", "error_type": type(error).__name__},
            )
            return None

    def upload_file(self, local_path: Union[str, Path], remote_path: str) -> bool:
        """Send a local file to the server chunk by chunk."""
        with open(local_path, "rb") as file_handle:
            while True:
                data = file_handle.read(self.chunk_size)
                if not data:
                    return True
                if not self.append_chunk(remote_path, data):
                    return False

    def download_file(
        self, remote_path: str, local_path: Union[str, Path], size: int
    ) -> bool:
        """Fetch size bytes of a remote file into a local file."""
        offset = 0
        with open(local_path, "wb") as file_handle:
            while offset < size:
                length = min(self.chunk_size, size - offset)
                data = self.read_chunk(remote_path, offset, length)
                if not data:
                    return False
                file_handle.write(data)
                offset += len(data)
        return True


def file_size(path: Union[str, Path]) -> int:
    """Size of a file on the (local) host, -1 when it cannot be stat'ed."""
    try:
        return os.stat(path).st_size
    except OSError:
        return -1
