"""Bearer token issuance and verification."""

import hmac
import uuid
from typing import Optional


def generate_auth_token() -> str:
    """Issue the opaque credential bound to one server instance."""
    return str(uuid.uuid4())


def is_authorized(presented: Optional[str], expected: str) -> bool:
    """Return True only when the authorization header equals the token exactly."""
    if presented is None or not expected:
        return False
    return hmac.compare_digest(presented.encode(), expected.encode())
