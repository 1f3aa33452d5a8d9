"""
Origin guard for state-mutating requests that carry no provider state.

Only the trusted-provider POST path goes through here. A request that sends
neither ``Origin`` nor ``Referer`` is let through: some clients omit both,
and rejecting them is a policy the deploying application has to opt into.
"""

import logging
from urllib.parse import urlsplit

from starlette.requests import Request

from ..errors import ForbiddenError

logger = logging.getLogger(__name__)


def _origin_of(url: str) -> str:
    """Return the scheme://host[:port] origin of ``url`` or '' when it has none."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return ""

    if not parts.scheme or not parts.hostname:
        return ""

    scheme = parts.scheme.lower()
    default_port = {"http": 80, "https": 443}.get(scheme)
    netloc = parts.hostname.lower()
    if port is not None and port != default_port:
        netloc = f"{netloc}:{port}"
    return f"{scheme}://{netloc}"


def is_same_origin(url: str, base_url: str) -> bool:
    origin = _origin_of(url)
    return bool(origin) and origin == _origin_of(base_url)


def enforce_same_origin(request: Request, base_url: str) -> None:
    """
    Reject the request if its Origin or Referer points somewhere else.

    Raises:
        ForbiddenError: If a present header does not match ``base_url``'s origin
    """
    origin = request.headers.get("origin")
    referer = request.headers.get("referer")

    if origin and not is_same_origin(origin, base_url):
        logger.warning("Rejected cross-origin request", extra={"origin": origin})
        raise ForbiddenError("invalid origin")

    if referer and not is_same_origin(referer, base_url):
        logger.warning("Rejected cross-origin referer", extra={"referer": referer})
        raise ForbiddenError("invalid referer")
