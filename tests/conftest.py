"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import base64
import json
import os
import subprocess
import sys
from pathlib import Path
from typing import Generator

import pytest

from chunkserver.bootstrap.config import ServerConfig
from chunkserver.crypto.codec import generate_key
from chunkserver.lifecycle.handle import ServerHandle, start_server

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"

TEST_CHUNK_SIZE = 1024


def _start(config: ServerConfig) -> Generator[ServerHandle, None, None]:
    handle = start_server(config)
    assert handle.ready, handle.info()
    try:
        yield handle
    finally:
        handle.stop()


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""

    return PROJECT_ROOT


@pytest.fixture(name="encryption_key")
def _encryption_key() -> bytes:
    """A fresh 32-byte ChaCha20-Poly1305 key."""

    return generate_key()


@pytest.fixture(name="plain_server")
def _plain_server() -> Generator[ServerHandle, None, None]:
    """Run an in-process server without encryption."""

    yield from _start(
        ServerConfig(chunk_size=TEST_CHUNK_SIZE, encryption_enabled=False)
    )


@pytest.fixture(name="encrypted_server")
def _encrypted_server(encryption_key: bytes) -> Generator[ServerHandle, None, None]:
    """Run an in-process server with ChaCha20-Poly1305 framing."""

    yield from _start(
        ServerConfig(
            chunk_size=TEST_CHUNK_SIZE,
            encryption_enabled=True,
            encryption_key=encryption_key,
        )
    )


@pytest.fixture(name="sandboxed_server")
def _sandboxed_server(tmp_path: Path) -> Generator[ServerHandle, None, None]:
    """Run an in-process server restricted to a temporary directory."""

    yield from _start(
        ServerConfig(chunk_size=TEST_CHUNK_SIZE, sandbox_root=tmp_path.as_posix())
    )


@pytest.fixture(name="base_url")
def _base_url(plain_server: ServerHandle) -> str:
    """Base URL of the unencrypted server, using the loopback address."""

    return f"http://127.0.0.1:{plain_server.port}"


@pytest.fixture(name="auth_headers")
def _auth_headers(plain_server: ServerHandle) -> dict[str, str]:
    """Authorization header accepted by the unencrypted server."""

    return {"authorization": plain_server.auth_token}


@pytest.fixture(name="cli_server")
def _cli_server(
    tmp_path: Path, encryption_key: bytes
) -> Generator[dict, None, None]:
    """Launch main.py as a subprocess and yield its start-up result."""

    log_file = tmp_path / "server.log"
    env = {
        **os.environ,
        "CHUNK_SERVER_KEY": base64.b64encode(encryption_key).decode(),
    }
    args = [
        sys.executable,
        str(SERVER_ENTRYPOINT),
        "--encryption",
        "--chunk-size",
        str(TEST_CHUNK_SIZE),
        "--log-destination",
        str(log_file),
    ]
    with subprocess.Popen(
        args,
        cwd=PROJECT_ROOT,
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    ) as process:
        assert process.stdout is not None
        first_line = process.stdout.readline()
        info = json.loads(first_line)
        yield {"info": info, "process": process, "log_file": log_file}

        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()
