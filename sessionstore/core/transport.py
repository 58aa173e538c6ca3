"""
Token transports: where the encoded session token lives on the wire.

Both transports implement the TokenTransport protocol so SessionStore never
depends on cookies directly.
"""

import logging
from typing import Optional, Protocol

from starlette.requests import HTTPConnection
from starlette.responses import Response

from sessionstore.core.exceptions import TokenNotFoundError
from sessionstore.core.session import SessionOptions

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_HEADER = "X-Session-Token"


def _is_clearing(token: str, options: SessionOptions) -> bool:
    return not token or options.max_age < 0


class TokenTransport(Protocol):
    """Reads and writes session tokens at the request/response boundary"""

    def get_token(self, request: HTTPConnection, name: str) -> str:
        """Return the raw token or raise TokenNotFoundError"""
        ...

    def set_token(self, response: Response, name: str, token: str, options: SessionOptions) -> None:
        """Write a token; an empty token or negative max_age clears it"""
        ...


class CookieTransport:
    """Carries the token in a cookie named after the session"""

    def get_token(self, request: HTTPConnection, name: str) -> str:
        token = request.cookies.get(name)
        if not token:
            raise TokenNotFoundError(f"no cookie named {name!r}")
        return token

    def set_token(self, response: Response, name: str, token: str, options: SessionOptions) -> None:
        if _is_clearing(token, options):
            # Max-Age=0 plus an expired date makes browsers drop the cookie
            response.delete_cookie(
                name,
                path=options.path,
                domain=options.domain,
                secure=options.secure,
                httponly=options.http_only,
                samesite=options.same_site,
            )
            return

        response.set_cookie(
            name,
            token,
            max_age=options.max_age or None,
            path=options.path,
            domain=options.domain,
            secure=options.secure,
            httponly=options.http_only,
            samesite=options.same_site,
        )


class HeaderTransport:
    """
    Carries each session's token in its own request/response header.

    The header for a session is "<header_name>-<session name>", so several
    sessions can travel on one request the way several cookies do. Useful for
    API clients that don't keep cookies. Clearing writes the header with an
    empty value, which clients must treat as "discard the token".
    Cookie-only options (path, domain, flags) don't apply to headers.
    """

    def __init__(self, header_name: Optional[str] = None):
        self.header_name = header_name or DEFAULT_TOKEN_HEADER

    def header_for(self, name: str) -> str:
        return f"{self.header_name}-{name}"

    def get_token(self, request: HTTPConnection, name: str) -> str:
        header = self.header_for(name)
        token = request.headers.get(header)
        if not token:
            raise TokenNotFoundError(f"no {header} header for session {name!r}")
        return token

    def set_token(self, response: Response, name: str, token: str, options: SessionOptions) -> None:
        header = self.header_for(name)
        if _is_clearing(token, options):
            response.headers[header] = ""
            return
        response.headers[header] = token
