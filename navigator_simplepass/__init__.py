"""Navigator SimplePass.

Gate aiohttp routes behind a shared pass key (or an email/password pair)
with stateless, sealed session cookies.
"""
from .version import __version__
from .conf import DEFAULT_COOKIE_NAME, DEFAULT_ROOTPATH, DEFAULT_TTL
from .config import AuthConfig, Labels, Theming, Font
from .cookies import CookieOptions
from .exceptions import (
    SimplePassError,
    ConfigurationError,
    AuthenticationError,
    AlreadyAuthenticated,
    MissingCredentials,
    InvalidCredentials,
    Unauthorized,
)
from .guard import SimplePass, AuthState, VerifyContext, classify, safe_redirect
from .seal import SecretRegistry, generate_secret, rotate_secret, retire_secret

__all__ = [
    "__version__",
    "DEFAULT_COOKIE_NAME",
    "DEFAULT_ROOTPATH",
    "DEFAULT_TTL",
    "AuthConfig",
    "Labels",
    "Theming",
    "Font",
    "CookieOptions",
    "SimplePassError",
    "ConfigurationError",
    "AuthenticationError",
    "AlreadyAuthenticated",
    "MissingCredentials",
    "InvalidCredentials",
    "Unauthorized",
    "SimplePass",
    "AuthState",
    "VerifyContext",
    "classify",
    "safe_redirect",
    "SecretRegistry",
    "generate_secret",
    "rotate_secret",
    "retire_secret",
]
