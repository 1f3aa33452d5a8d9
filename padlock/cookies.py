"""
Request-scoped cookie jar.

Reads come from the incoming request; writes are recorded and applied to
whichever response ends up being returned, so cookie changes survive even
when the handler fails and an error response is rendered instead.
"""

from typing import Dict, List, Optional, Tuple

from starlette.requests import Request
from starlette.responses import Response


_DELETED = object()


class CookieJar:
    def __init__(self, request: Request):
        self._incoming: Dict[str, str] = dict(request.cookies)
        self._current: Dict[str, object] = {}
        self._operations: List[Tuple[str, str, dict]] = []

    def get(self, name: str) -> Optional[str]:
        if name in self._current:
            value = self._current[name]
            return None if value is _DELETED else value  # type: ignore[return-value]
        return self._incoming.get(name)

    def set(
        self,
        name: str,
        value: str,
        *,
        http_only: bool = True,
        same_site: str = "lax",
        secure: bool = False,
        path: str = "/",
        max_age: Optional[int] = None,
    ) -> None:
        self._current[name] = value
        self._operations.append((
            "set",
            name,
            {
                "value": value,
                "httponly": http_only,
                "samesite": same_site,
                "secure": secure,
                "path": path,
                "max_age": max_age,
            },
        ))

    def delete(self, name: str, *, path: str = "/") -> None:
        self._current[name] = _DELETED
        self._operations.append(("delete", name, {"path": path}))

    def apply(self, response: Response) -> Response:
        """Write every recorded operation onto ``response`` in order."""
        for action, name, options in self._operations:
            if action == "set":
                response.set_cookie(name, **options)
            else:
                response.delete_cookie(name, **options)
        return response
