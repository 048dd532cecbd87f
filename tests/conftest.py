import os

os.environ.setdefault("DATABASE_URL", "sqlite://:memory:")
os.environ.setdefault("JWT_SECRET", "unit-test-secret")
os.environ.setdefault("LLM_PROVIDER", "gemini")

import httpx
import pytest
from tortoise import Tortoise

from helper.config import get_settings
from helper.security import create_token, hash_password
from helper.tortoise_config import build_tortoise_config
from models.user import User


@pytest.fixture
async def db():
    await Tortoise.init(config=build_tortoise_config("sqlite://:memory:", with_aerich=False))
    await Tortoise.generate_schemas()
    try:
        yield
    finally:
        await Tortoise.close_connections()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
async def make_user(db):
    counter = {"n": 0}

    async def _make(credits: int = 1250, username: str = None, password: str = "pw-123456") -> User:
        counter["n"] += 1
        name = username or f"user{counter['n']}"
        return await User.create(
            username=name,
            email=f"{name}@example.com",
            password=hash_password(password),
            credits=credits,
        )

    return _make


@pytest.fixture
def auth_headers(settings):
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_token(user.id, settings)}"}

    return _headers


@pytest.fixture
async def api(db, settings):
    """HTTP client over the real app with a scripted generator in place of the LLM."""
    from fakes import ScriptedGenerator
    from main import app
    from services.bootstrap import build_services

    generator = ScriptedGenerator()
    build_services(app, settings, generator=generator)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        client.generator = generator
        yield client
