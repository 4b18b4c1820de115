"""Caller identity for FastAPI.

Signature verification happens in the host gateway, which forwards the
verified principal in a trusted header. This module only extracts it.
"""

from dataclasses import dataclass

from fastapi import HTTPException, Request

from legacy_tokens.core.config import get_settings


@dataclass(frozen=True)
class Principal:
    """Caller identity as forwarded by the host gateway."""

    principal_id: str


async def require_principal(request: Request) -> Principal:
    """FastAPI dependency returning the calling principal.

    Raises ``HTTPException(401)`` when the header is missing or blank.
    """
    header = get_settings().principal_header
    value = request.headers.get(header, "").strip()
    if not value:
        raise HTTPException(status_code=401, detail=f"Missing {header} header")
    return Principal(principal_id=value)
