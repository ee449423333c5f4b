"""
Shared fixtures for SimplePass tests.

The *_client fixtures run a real aiohttp application through the
pytest-aiohttp ``aiohttp_client`` fixture, with one guarded route
(/private), one public route (/) and the SimplePass routes.
"""
import pytest
from aiohttp import web

from navigator_simplepass import AuthConfig, SimplePass
from navigator_simplepass.seal import SecretRegistry


SECRET = "a-very-long-secure-secret-for-testing-purposes"
PASSKEY = "open-sesame"
EMAIL = "owner@example.com"
PASSWORD = "correct horse battery staple"
TTL = 3600


def make_app(simplepass: SimplePass) -> web.Application:
    app = web.Application()
    simplepass.setup(app)

    @simplepass.guard
    async def private(request):
        return web.Response(text="passed")

    async def public(request):
        return web.Response(text="public")

    app.router.add_get("/private", private)
    app.router.add_get("/", public)
    return app


@pytest.fixture
def registry():
    return SecretRegistry.from_source(SECRET)


@pytest.fixture
def verify_calls():
    """Records every call made to the verify callables."""
    return []


@pytest.fixture
def passkey_config(verify_calls):
    def verify(passkey, context):
        verify_calls.append((passkey, context))
        return passkey == PASSKEY

    return AuthConfig(
        pass_type="passkey",
        verify=verify,
        secrets=SECRET,
        secure=False,
        ttl=TTL,
    )


@pytest.fixture
def email_config(verify_calls):
    async def verify(email, password, context):
        verify_calls.append((email, password, context))
        return email == EMAIL and password == PASSWORD

    return AuthConfig(
        pass_type="email-password",
        verify=verify,
        secrets=SECRET,
        secure=False,
        ttl=TTL,
        rootpath="/auth/",
    )


@pytest.fixture
async def passkey_client(aiohttp_client, passkey_config):
    return await aiohttp_client(make_app(SimplePass(passkey_config)))


@pytest.fixture
async def email_client(aiohttp_client, email_config):
    return await aiohttp_client(make_app(SimplePass(email_config)))
