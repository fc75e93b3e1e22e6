"""API dependencies - request metadata"""

from typing import Optional

from fastapi import Request


def get_client_ip(request: Request) -> str:
    """
    Client address for rate limiting

    Args:
        request: Incoming request

    Returns:
        First X-Forwarded-For hop, else the socket peer, else "unknown"
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


def get_request_id(request: Request) -> Optional[str]:
    """Request id assigned by the middleware"""
    return getattr(request.state, "request_id", None)
