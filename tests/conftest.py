"""Pytest configuration and fixtures."""

import inspect
import json
import os
from types import SimpleNamespace
from typing import Any, Callable, Optional, Union
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from jose import jwt

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["LEDGER_API_URL"] = "http://ledger.test/api"

from ledgerbot.config import Settings
from ledgerbot.container import BotServices, build_services
from ledgerbot.ledger.client import LedgerClient

API_BASE = "http://ledger.test/api"


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_jwt(exp: Optional[float] = None, **claims) -> str:
    """HS256 JWT carrying ``exp``; the bot never verifies the signature."""
    payload = dict(claims)
    if exp is not None:
        payload["exp"] = int(exp)
    return jwt.encode(payload, "test-secret", algorithm="HS256")


Route = Union[tuple[int, Any], Callable[[httpx.Request], httpx.Response]]


class FakeLedger:
    """Scripted ledger API behind an httpx.MockTransport."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Route] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, json: Any = None, status: int = 200, handler=None):
        self.routes[(method, "/api" + path)] = handler or (status, json)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "Not found"})
        if callable(route):
            return route(request)
        status, body = route
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests if r.method == method and r.url.path == "/api" + path
        ]

    def body(self, request: httpx.Request) -> dict:
        return json.loads(request.content)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
async def ledger_client(fake_ledger):
    client = LedgerClient(API_BASE, transport=fake_ledger.transport)
    yield client
    await client.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        telegram_bot_token="",
        ledger_api_url=API_BASE,
        platform_url="https://app.ledger.test",
        support_contact="help@ledger.test",
    )


@pytest.fixture
async def services(settings, fake_ledger, clock) -> BotServices:
    services = build_services(settings, transport=fake_ledger.transport, clock=clock)
    yield services
    await services.close()


# ======================
# aiogram stand-ins
# ======================


def make_message(text: Optional[str], user_id: int = 1, chat_id: int = 100):
    """MagicMock shaped like an aiogram Message."""
    from aiogram.types import Message

    message = MagicMock(spec=Message)
    message.text = text
    message.from_user = MagicMock(id=user_id, first_name="Alice")
    message.chat = MagicMock(id=chat_id)
    message.answer = AsyncMock()
    message.edit_text = AsyncMock()
    message.answer_photo = AsyncMock()
    return message


def make_callback(data: str, user_id: int = 1, chat_id: int = 100):
    """MagicMock shaped like an aiogram CallbackQuery."""
    from aiogram.types import CallbackQuery

    callback = MagicMock(spec=CallbackQuery)
    callback.data = data
    callback.from_user = MagicMock(id=user_id)
    callback.message = make_message(None, user_id, chat_id)
    callback.answer = AsyncMock()
    return callback


async def dispatch(services: BotServices, handler, event, flags: Optional[dict] = None, **extra):
    """Run ``handler`` behind the same middleware chain the dispatcher uses.

    Only the keyword arguments the handler declares are passed, as aiogram does.
    """
    from ledgerbot.bot.middlewares import (
        ActionLimitMiddleware,
        AuthMiddleware,
        RateLimitMiddleware,
    )

    data = {
        "services": services,
        "event_from_user": event.from_user,
        "handler": SimpleNamespace(flags=flags or {}),
        **extra,
    }
    accepted = set(inspect.signature(handler).parameters)

    async def call_handler(evt, d):
        kwargs = {k: v for k, v in d.items() if k in accepted}
        return await handler(evt, **kwargs)

    async def auth(evt, d):
        return await AuthMiddleware()(call_handler, evt, d)

    async def action(evt, d):
        return await ActionLimitMiddleware()(auth, evt, d)

    return await RateLimitMiddleware()(action, event, data)
