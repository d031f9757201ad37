"""Resolution of request URIs into filesystem paths."""

from pathlib import Path
from typing import Optional

from chunkserver.domain.errors import ChunkError, ErrorKind


def resolve_chunk_path(user_path: str, sandbox_root: Optional[str] = None) -> Path:
    """Turn the decoded request path into the file a chunk is read from or appended to.

    Without a sandbox the URI path is used as an absolute filesystem path.
    With one, the path must resolve inside the sandbox directory.
    """
    if "\x00" in user_path:
        raise ChunkError(ErrorKind.BAD_REQUEST, "path contains a NUL byte")
    if not user_path.startswith("/") or user_path == "/":
        raise ChunkError(ErrorKind.BAD_REQUEST, "path must name a file")

    target = Path(user_path)
    if sandbox_root is None:
        return target

    directory_root = Path(sandbox_root).resolve()
    resolved = target.resolve()
    if directory_root not in resolved.parents:
        raise ChunkError(ErrorKind.FORBIDDEN_PATH, "path escapes the sandbox")
    return resolved
