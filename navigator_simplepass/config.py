"""
SimplePass Configuration: Validated, immutable settings built once at startup.

An AuthConfig is passed explicitly to every SimplePass instance, so several
independent configurations can coexist in the same process.
"""
import os
import logging
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .conf import DEFAULT_COOKIE_NAME, DEFAULT_ROOTPATH, DEFAULT_TTL, LOGOUT_SUFFIX
from .cookies import CookieOptions, build_cookie_options, normalize_root_path
from .exceptions import ConfigurationError
from .seal.config import SecretRegistry, coerce_registry, load_secrets

logger = logging.getLogger("navigator.simplepass")

PassType = Literal["passkey", "email-password"]


class Labels(BaseModel):
    """User-facing text on the authentication page."""

    title: str = "Authentication"
    instruction: Optional[str] = None
    passkey_placeholder: str = "Pass key"
    email_placeholder: str = "Email"
    password_placeholder: str = "Password"
    submit: str = "Submit"
    logout: str = "Log out"
    logged_out: str = "You have been logged out."
    unauthorized: str = "Not authorized."
    already_authenticated: str = "You are already authenticated."
    passkey_required: str = "Passkey is required."
    credentials_required: str = "Email and password are required."
    incorrect_passkey: str = "Incorrect passkey."
    invalid_credentials: str = "Invalid credentials."

    model_config = {"frozen": True, "extra": "forbid"}

    def instruction_for(self, pass_type: PassType) -> str:
        if self.instruction:
            return self.instruction
        if pass_type == "passkey":
            return "Enter the pass key to continue"
        return "Enter your credentials to continue"


class Font(BaseModel):
    """Stylesheet URL and font-family applied to the authentication page."""

    url: str
    family: str

    model_config = {"frozen": True}


class Theming(BaseModel):
    title: Optional[str] = None
    font: Optional[Font] = None
    css: Optional[str] = None

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("css")
    @classmethod
    def inline_css(cls, v: Optional[str]) -> Optional[str]:
        """Read css from disk when given as an absolute path."""
        if v is None or not os.path.isabs(v):
            return v
        try:
            with open(v, encoding="utf-8") as fp:
                return fp.read()
        except OSError as err:
            raise ConfigurationError(
                f"simplepass: cannot read css file {v}: {err}"
            ) from err


class AuthConfig(BaseModel):
    """Validated SimplePass configuration.

    ``verify`` receives ``(passkey, context)`` for the "passkey" type and
    ``(email, password, context)`` for "email-password"; it may return a
    bool or an awaitable resolving to one.

    Raises:
        ConfigurationError: On a weak or missing secret.
        pydantic.ValidationError: On any other invalid setting.
    """

    pass_type: PassType
    verify: Callable[..., Any]
    secrets: SecretRegistry
    secure: bool
    ttl: int = Field(default=DEFAULT_TTL, gt=0)
    cookie_name: str = Field(default=DEFAULT_COOKIE_NAME, min_length=1)
    cookie: CookieOptions = Field(default_factory=CookieOptions)
    rootpath: str = DEFAULT_ROOTPATH
    labels: Labels = Field(default_factory=Labels)
    theming: Theming = Field(default_factory=Theming)

    model_config = {"frozen": True}

    @field_validator("secrets", mode="before")
    @classmethod
    def validate_secrets(cls, v: Any) -> SecretRegistry:
        return coerce_registry(v)

    @field_validator("rootpath")
    @classmethod
    def validate_rootpath(cls, v: str) -> str:
        return normalize_root_path(v)

    @property
    def logout_path(self) -> str:
        if self.rootpath == "/":
            return LOGOUT_SUFFIX
        return f"{self.rootpath}{LOGOUT_SUFFIX}"

    def cookie_options(self, ttl: Optional[int] = None) -> dict[str, Any]:
        """Attributes for writing (or clearing) the session cookie."""
        return build_cookie_options(
            self.cookie, self.ttl if ttl is None else ttl, self.secure,
        )

    @classmethod
    def from_env(cls, pass_type: PassType, verify: Callable[..., Any], **kwargs) -> "AuthConfig":
        """Create an AuthConfig with secrets loaded from the environment.

        Returns:
            Populated AuthConfig instance.
        """
        config = cls(
            pass_type=pass_type,
            verify=verify,
            secrets=SecretRegistry.from_source(load_secrets()),
            **kwargs,
        )
        logger.debug(
            "SimplePass configured from environment: rootpath=%s secret ids=%s",
            config.rootpath, config.secrets.ids,
        )
        return config
