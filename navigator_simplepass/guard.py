"""
SimplePass Guard: Authentication state machine for aiohttp applications.

A request is either AUTHENTICATED or UNAUTHENTICATED; the state is computed
fresh for every request from the session cookie, nothing is stored server
side. SimplePass exposes:

- ``guard(handler)``: decorator protecting a single handler
- ``middleware(*prefixes)``: aiohttp middleware protecting path prefixes
- ``setup(app)``: registers the login view, login and logout routes:
    GET  <root>          login page
    POST <root>          login attempt
    POST <root>/_logout  logout

Security Note:
    Never log pass keys, passwords or tokens. Redirect targets are always
    filtered through ``safe_redirect()`` to prevent open redirects.
"""
import inspect
import logging
import functools
from enum import Enum
from typing import Any, Optional
from dataclasses import dataclass
from urllib.parse import quote

import jinja2
from aiohttp import web

from .conf import (
    DEFAULT_REDIRECT,
    FLASH_COOKIE_NAME,
    FLASH_LOGGED_OUT,
    FLASH_MAX_AGE,
)
from .config import AuthConfig
from .cookies import clear_cookie, read_cookie, write_cookie
from .exceptions import (
    AlreadyAuthenticated,
    AuthenticationError,
    InvalidCredentials,
    MissingCredentials,
    Unauthorized,
)
from .seal.config import SecretRegistry
from .seal.crypto import seal, unseal

logger = logging.getLogger("navigator.simplepass.guard")

_templates = jinja2.Environment(
    loader=jinja2.PackageLoader("navigator_simplepass", "templates"),
    autoescape=jinja2.select_autoescape(["html"]),
)


class AuthState(str, Enum):
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class VerifyContext:
    """Second (or third) argument handed to the verify callable."""

    request: web.Request


def classify(
    cookie_value: Optional[str],
    registry: SecretRegistry,
    ttl: int,
    now: Optional[float] = None,
) -> AuthState:
    """Classify a session cookie value."""
    if not cookie_value:
        return AuthState.UNAUTHENTICATED
    if unseal(cookie_value, registry, ttl, now=now) is None:
        return AuthState.UNAUTHENTICATED
    return AuthState.AUTHENTICATED


def safe_redirect(raw: Any, fallback: Optional[str]) -> Optional[str]:
    """Return ``raw`` when it is a same-origin relative path, else ``fallback``.

    "//host" is rejected since browsers treat it as a protocol-relative URL.
    Backslashes and control characters are rejected too: browsers turn
    "/\\host" into "//host" and drop tabs and newlines from URLs.
    """
    if not isinstance(raw, str):
        return fallback
    if not raw.startswith("/") or raw.startswith("//"):
        return fallback
    if "\\" in raw or any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in raw):
        return fallback
    return raw


def _matches(path: str, prefix: str) -> bool:
    if prefix == "/":
        return True
    prefix = prefix.rstrip("/")
    return path == prefix or path.startswith(f"{prefix}/")


class SimplePass:
    """Shared credential gate for an aiohttp application."""

    def __init__(self, config: AuthConfig):
        self.config = config
        self._template = _templates.get_template("pass.html")

    def __repr__(self) -> str:
        return (
            f"<SimplePass type={self.config.pass_type} "
            f"rootpath={self.config.rootpath}>"
        )

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def state(self, request: web.Request) -> AuthState:
        token = read_cookie(request, self.config.cookie_name)
        return classify(token, self.config.secrets, self.config.ttl)

    async def passed(self, request: web.Request) -> bool:
        """True when the request carries a valid session cookie."""
        return self.state(request) is AuthState.AUTHENTICATED

    def _login_redirect(self, request: web.Request) -> web.Response:
        target = quote(request.path_qs, safe="")
        return self._redirect(f"{self.config.rootpath}?redirect={target}")

    def guard(self, handler):
        """Decorator for handlers that require an authenticated request.

        Unauthenticated requests are redirected to the login page with the
        original path and query in the ``redirect`` parameter.
        """
        @functools.wraps(handler)
        async def _guarded(request: web.Request):
            if await self.passed(request):
                return await handler(request)
            logger.debug("Unauthenticated request to %s", request.path)
            return self._login_redirect(request)
        return _guarded

    def middleware(self, *prefixes: str):
        """Build an aiohttp middleware guarding every path under ``prefixes``.

        With no prefix the whole application is guarded. The login and
        logout routes are never guarded.
        """
        protected = prefixes or ("/",)
        auth_routes = {self.config.rootpath, self.config.logout_path}

        @web.middleware
        async def simplepass_middleware(request: web.Request, handler):
            path = request.path
            if path in auth_routes or not any(_matches(path, p) for p in protected):
                return await handler(request)
            if await self.passed(request):
                return await handler(request)
            logger.debug("Unauthenticated request to %s", path)
            return self._login_redirect(request)
        return simplepass_middleware

    def setup(self, app: web.Application) -> "SimplePass":
        """Register the authentication routes on ``app``."""
        app.router.add_get(self.config.rootpath, self.authenticate_view)
        app.router.add_post(self.config.rootpath, self.authenticate)
        app.router.add_post(self.config.logout_path, self.logout)
        logger.info(
            "SimplePass (%s) routes registered under %s",
            self.config.pass_type, self.config.rootpath,
        )
        return self

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def authenticate_view(self, request: web.Request) -> web.Response:
        """Render the login page; consumes the one-shot "logged out" flash."""
        flash = read_cookie(request, FLASH_COOKIE_NAME)
        response = self._render(
            request,
            unpassed=flash == FLASH_LOGGED_OUT,
            redirect=safe_redirect(request.query.get("redirect"), None),
        )
        if flash is not None:
            clear_cookie(response, FLASH_COOKIE_NAME, self._flash_options(0))
        return response

    async def authenticate(self, request: web.Request) -> web.Response:
        """Login attempt: verify credentials, then set the session cookie."""
        redirect = safe_redirect(request.query.get("redirect"), DEFAULT_REDIRECT)
        form = await request.post()
        try:
            if await self.passed(request):
                raise AlreadyAuthenticated(self.config.labels.already_authenticated)
            if self.config.pass_type == "passkey":
                await self._verify_passkey(request, form)
            else:
                await self._verify_credentials(request, form)
        except AuthenticationError as err:
            logger.info(
                "Login rejected from %s: %s", request.remote, type(err).__name__
            )
            email = None
            if self.config.pass_type == "email-password":
                value = form.get("email")
                email = value if isinstance(value, str) else None
            return self._render(
                request,
                status=err.status,
                error=err.message,
                redirect=redirect,
                email=email,
            )

        token = seal(self.config.secrets, self.config.ttl)
        response = self._redirect(redirect)
        write_cookie(
            response, self.config.cookie_name, token, self.config.cookie_options()
        )
        logger.info("Login accepted from %s", request.remote)
        return response

    async def logout(self, request: web.Request) -> web.Response:
        """Clear the session cookie and flash "logged out" once."""
        try:
            if not await self.passed(request):
                raise Unauthorized(self.config.labels.unauthorized)
        except AuthenticationError as err:
            return self._render(request, status=err.status, error=err.message)

        response = self._redirect(self.config.rootpath)
        clear_cookie(
            response, self.config.cookie_name, self.config.cookie_options(0)
        )
        write_cookie(
            response,
            FLASH_COOKIE_NAME,
            FLASH_LOGGED_OUT,
            self._flash_options(FLASH_MAX_AGE),
        )
        logger.info("Logout from %s", request.remote)
        return response

    # ------------------------------------------------------------------
    # Credential checks
    # ------------------------------------------------------------------

    async def _call_verify(self, *args) -> bool:
        result = self.config.verify(*args)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    async def _verify_passkey(self, request: web.Request, form) -> None:
        labels = self.config.labels
        passkey = form.get("passkey")
        if not isinstance(passkey, str) or not passkey.strip():
            raise MissingCredentials(labels.passkey_required)
        if not await self._call_verify(passkey, VerifyContext(request)):
            raise InvalidCredentials(labels.incorrect_passkey)

    async def _verify_credentials(self, request: web.Request, form) -> None:
        labels = self.config.labels
        email = form.get("email")
        password = form.get("password")
        if (
            not isinstance(email, str)
            or not isinstance(password, str)
            or not email.strip()
            or password == ""
        ):
            raise MissingCredentials(labels.credentials_required)
        if not await self._call_verify(email, password, VerifyContext(request)):
            raise InvalidCredentials(labels.invalid_credentials)

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def _flash_options(self, max_age: int) -> dict[str, Any]:
        return {
            "path": "/",
            "httponly": True,
            "samesite": "lax",
            "secure": self.config.secure,
            "max_age": max_age,
        }

    @staticmethod
    def _redirect(location: str) -> web.Response:
        return web.Response(status=302, headers={"Location": location})

    def _render(
        self,
        request: web.Request,
        status: int = 200,
        redirect: Optional[str] = None,
        **context,
    ) -> web.Response:
        config = self.config
        action = config.rootpath
        if redirect:
            action = f"{action}?redirect={quote(redirect, safe='')}"
        try:
            html = self._template.render(
                type=config.pass_type,
                rootpath=config.rootpath,
                logout_path=config.logout_path,
                action=action,
                labels=config.labels,
                instruction=config.labels.instruction_for(config.pass_type),
                page_title=config.theming.title or config.labels.title,
                font=config.theming.font,
                css=config.theming.css,
                passed=self.state(request) is AuthState.AUTHENTICATED,
                **context,
            )
        except jinja2.TemplateError:
            logger.exception("Failed to render the authentication page")
            return web.Response(
                status=500, text="Internal Server Error", content_type="text/plain"
            )
        return web.Response(status=status, text=html, content_type="text/html")
