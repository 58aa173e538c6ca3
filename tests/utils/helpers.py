"""
Test helper functions for common testing operations

These helpers build Starlette requests/responses and read back the tokens a
transport wrote, so tests exercise the store the way a web framework would.
"""

from typing import Dict, List, Optional

from starlette.requests import Request
from starlette.responses import Response

SESSION_NAME = "sid"


def make_request(
    cookies: Optional[Dict[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Request:
    """Build a Starlette request carrying the given cookies and headers"""
    raw_headers = []
    if cookies:
        cookie_header = "; ".join(f"{name}={value}" for name, value in cookies.items())
        raw_headers.append((b"cookie", cookie_header.encode("latin-1")))
    for name, value in (headers or {}).items():
        raw_headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))

    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": "/",
        "root_path": "",
        "query_string": b"",
        "headers": raw_headers,
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }
    return Request(scope)


def set_cookie_headers(response: Response, name: str = SESSION_NAME) -> List[str]:
    """Return the Set-Cookie headers written for a cookie name"""
    return [
        value for value in response.headers.getlist("set-cookie")
        if value.startswith(f"{name}=")
    ]


def cookie_token(response: Response, name: str = SESSION_NAME) -> str:
    """Extract the cookie value written for a cookie name"""
    headers = set_cookie_headers(response, name)
    assert headers, f"No Set-Cookie header for {name!r}"
    return headers[-1].split(";", 1)[0].split("=", 1)[1].strip('"')


def assert_cookie_cleared(response: Response, name: str = SESSION_NAME) -> None:
    """Assert the response instructs the client to drop the cookie"""
    headers = set_cookie_headers(response, name)
    assert headers, f"No Set-Cookie header for {name!r}"
    assert "max-age=0" in headers[-1].lower(), headers[-1]


def flip_char(token: str, index: int) -> str:
    """Replace one character of a token with a different one"""
    replacement = "A" if token[index] != "A" else "B"
    return token[:index] + replacement + token[index + 1:]
