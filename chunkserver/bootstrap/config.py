"""Server configuration, startup option parsing and CLI argument parsing."""

import argparse
import base64
import binascii
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT_MIN = _env_int("CHUNK_SERVER_PORT_MIN", 49151)
DEFAULT_PORT_MAX = _env_int("CHUNK_SERVER_PORT_MAX", 65536)
DEFAULT_RETRIES = _env_int("CHUNK_SERVER_RETRIES", 5)
DEFAULT_CHUNK_SIZE = _env_int("CHUNK_SERVER_CHUNK_SIZE", 10024000)
DEFAULT_ENCRYPTION = _env_bool("CHUNK_SERVER_ENCRYPTION", False)
DEFAULT_SOCKET_TIMEOUT = _env_int("CHUNK_SERVER_SOCKET_TIMEOUT", 60)
DEFAULT_SHUTDOWN_GRACE_SECONDS = _env_int("CHUNK_SERVER_SHUTDOWN_GRACE_SECONDS", 2)

NONCE_LENGTH = 12
TAG_LENGTH = 16
FRAME_OVERHEAD = NONCE_LENGTH + TAG_LENGTH
KEY_LENGTH = 32

HEADER_DELIMITER = b"\r\n\r\n"
MAX_HEADER_BYTES = 64 * 1024
STREAM_BUFFER_SIZE = 512 * 1024

CORS_ALLOWED_METHODS = ["GET", "POST", "PUT", "HEAD", "OPTIONS"]

PROTOCOL_VERSION = 2
PLATFORM_NAME = "python"


@dataclass
class ServerConfig:
    """Everything needed to bind and run one chunk server instance."""

    # pylint: disable=too-many-instance-attributes
    fixed_port: Optional[int] = None
    port_range_min: int = DEFAULT_PORT_MIN
    port_range_max: int = DEFAULT_PORT_MAX
    max_bind_retries: int = DEFAULT_RETRIES
    chunk_size: int = DEFAULT_CHUNK_SIZE
    encryption_enabled: bool = DEFAULT_ENCRYPTION
    encryption_key: Optional[bytes] = None
    host: str = DEFAULT_HOST
    socket_timeout: int = DEFAULT_SOCKET_TIMEOUT
    shutdown_grace_seconds: int = DEFAULT_SHUTDOWN_GRACE_SECONDS
    sandbox_root: Optional[str] = None

    @property
    def max_accepted_body_size(self) -> int:
        """Largest PUT body accepted, including the AEAD framing when enabled."""
        overhead = FRAME_OVERHEAD if self.encryption_enabled else 0
        return self.chunk_size + overhead


def decode_key(key_base64: Optional[str]) -> Optional[bytes]:
    """Decode a standard base64 key, returning b"" when the text is not base64."""
    if not key_base64:
        return None
    try:
        return base64.b64decode(key_base64, validate=True)
    except (binascii.Error, ValueError):
        return b""


def _option_int(options: Mapping[str, Any], name: str, default: int) -> int:
    value = options.get(name)
    if value is None:
        return default
    return int(value)


def config_from_options(options: Mapping[str, Any]) -> ServerConfig:
    """Build a ServerConfig from the embedding app's startup mapping.

    Recognised keys: ``key`` (base64), ``encryption``, ``port`` (0 = auto),
    ``portMin``, ``portMax``, ``retries`` and ``chunkSize``.
    """
    port = _option_int(options, "port", 0)
    return ServerConfig(
        fixed_port=port if port > 0 else None,
        port_range_min=_option_int(options, "portMin", DEFAULT_PORT_MIN),
        port_range_max=_option_int(options, "portMax", DEFAULT_PORT_MAX),
        max_bind_retries=_option_int(options, "retries", DEFAULT_RETRIES),
        chunk_size=_option_int(options, "chunkSize", DEFAULT_CHUNK_SIZE),
        encryption_enabled=bool(options.get("encryption", False)),
        encryption_key=decode_key(options.get("key")),
    )


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Build a ServerConfig from parsed CLI arguments."""
    return ServerConfig(
        fixed_port=args.port if args.port > 0 else None,
        port_range_min=args.port_min,
        port_range_max=args.port_max,
        max_bind_retries=args.retries,
        chunk_size=args.chunk_size,
        encryption_enabled=args.encryption,
        encryption_key=decode_key(args.key),
        host=args.host,
        socket_timeout=args.socket_timeout,
        shutdown_grace_seconds=args.shutdown_grace_seconds,
        sandbox_root=args.directory,
    )


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for server configuration."""
    parser = argparse.ArgumentParser(description="Loopback file chunk server")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument(
        "--port",
        type=int,
        default=0,
        help="Fixed port to try first (0 picks a random port in the range)",
    )
    parser.add_argument("--port-min", type=int, default=DEFAULT_PORT_MIN)
    parser.add_argument(
        "--port-max",
        type=int,
        default=DEFAULT_PORT_MAX,
        help="Exclusive upper bound of the random port range",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=DEFAULT_RETRIES,
        help="Random port bind attempts before giving up",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=DEFAULT_CHUNK_SIZE,
        help="Largest plaintext chunk accepted or served, in bytes",
    )
    parser.add_argument(
        "--encryption",
        action=argparse.BooleanOptionalAction,
        default=DEFAULT_ENCRYPTION,
        help="Wrap chunk payloads in ChaCha20-Poly1305 frames",
    )
    parser.add_argument(
        "--key",
        default=os.getenv("CHUNK_SERVER_KEY"),
        help="Base64 encoded 32-byte key (defaults to CHUNK_SERVER_KEY)",
    )
    parser.add_argument(
        "--directory",
        default=None,
        help="Restrict chunk paths to this directory",
    )
    default_log_level = os.getenv("CHUNK_SERVER_LOG_LEVEL", "INFO").upper()
    default_destination = os.getenv("CHUNK_SERVER_LOG_DESTINATION", "stdout")
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--socket-timeout",
        type=int,
        default=DEFAULT_SOCKET_TIMEOUT,
        help="Socket timeout in seconds for request processing",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=int,
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        help="Seconds to wait for in-flight requests on stop",
    )
    return parser.parse_args(argv)
