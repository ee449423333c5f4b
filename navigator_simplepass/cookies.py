"""Cookie transport for aiohttp requests and responses.

Cookies are read straight from the request and added to the response's
cookie set, so cookies written by other handlers or middlewares on the same
response are preserved.

Limitation: aiohttp keeps one cookie per name on a response, so writing a
cookie replaces any cookie of the same name set earlier on that response
(a different path or domain does not produce a second Set-Cookie header).
"""
from collections.abc import Mapping
from typing import Any, Literal, Optional, Union

from aiohttp import web
from pydantic import BaseModel

_EPOCH = 'Thu, 01 Jan 1970 00:00:00 GMT'


class CookieOptions(BaseModel):
    """Caller overrides for the session cookie attributes.

    ``httponly`` and ``max_age`` are not configurable, and ``secure`` is set
    explicitly on the AuthConfig.
    """
    path: Optional[str] = None
    domain: Optional[str] = None
    samesite: Optional[Literal['lax', 'strict', 'none']] = None

    model_config = {"frozen": True, "extra": "forbid"}


def build_cookie_options(
    user_options: Union[CookieOptions, Mapping[str, Any], None],
    ttl: int,
    secure: bool
) -> dict[str, Any]:
    """Build the attributes for a session cookie write.

    path defaults to "/" and samesite to "lax"; httponly is always True,
    max_age is always ``ttl`` and secure is always the caller's value.
    """
    if user_options is None:
        user_options = CookieOptions()
    elif not isinstance(user_options, CookieOptions):
        user_options = CookieOptions(**user_options)
    options = {
        'path': '/',
        'samesite': 'lax',
        **user_options.model_dump(exclude_none=True),
    }
    options['secure'] = secure
    options['httponly'] = True
    options['max_age'] = ttl
    return options


def read_cookie(request: web.Request, name: str) -> Optional[str]:
    return request.cookies.get(name)


def write_cookie(
    response: web.StreamResponse,
    name: str,
    value: str,
    options: Mapping[str, Any]
) -> None:
    response.set_cookie(name, value, **options)


def clear_cookie(
    response: web.StreamResponse,
    name: str,
    options: Mapping[str, Any]
) -> None:
    """Expire a cookie.

    Browsers only delete the cookie when path, domain, samesite and secure
    match the ones it was written with, so ``options`` must be the same
    attributes used by write_cookie().
    """
    attrs = {**options, 'max_age': 0, 'expires': _EPOCH}
    response.set_cookie(name, '', **attrs)


def normalize_root_path(path: str) -> str:
    """Normalize the root path of the authentication routes.

    Leading "/" is ensured and the trailing slash removed, except for "/".
    """
    out = path.strip()
    if not out.startswith('/'):
        out = f'/{out}'
    if len(out) > 1 and out.endswith('/'):
        out = out.rstrip('/') or '/'
    return out
