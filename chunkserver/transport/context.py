"""State shared read-only by every worker thread of one server instance."""

from dataclasses import dataclass, field
from typing import Optional

from chunkserver.crypto.codec import ChunkCodec
from chunkserver.lifecycle.state import ServerLifecycle
from chunkserver.security.cors import CorsPolicy


@dataclass(frozen=True)
class ServerInstance:
    """Immutable per-instance settings; nothing here changes after start-up."""

    # pylint: disable=too-many-instance-attributes
    port: int
    auth_token: str
    chunk_size: int
    max_accepted_body_size: int
    codec: ChunkCodec
    cors_policy: CorsPolicy = field(default_factory=CorsPolicy)
    sandbox_root: Optional[str] = None
    socket_timeout: Optional[int] = None
    lifecycle: Optional[ServerLifecycle] = None
