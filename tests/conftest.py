from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import httpx
import pytest

from delivery_boy.api.app import create_app
from delivery_boy.delivery.webhook import WebhookDispatcher
from delivery_boy.services.auth import AuthGate
from delivery_boy.services.database import EntryStore
from delivery_boy.services.digest import DigestCompiler
from delivery_boy.services.ingest import AppContext

LA = ZoneInfo("America/Los_Angeles")
SECRET = "s3cret"
AUTH = {"Authorization": f"Bearer {SECRET}"}

HOOK_A = "https://discord.example/api/webhooks/1/aaa"
HOOK_B = "https://discord.example/api/webhooks/2/bbb"

# Wednesday 2024-05-15 05:00 in Los Angeles. The window starts Sunday 2024-05-12 00:00 PDT.
WEDNESDAY = datetime(2024, 5, 15, 12, 0, 0, tzinfo=timezone.utc)
WEEK_START = datetime(2024, 5, 12, 7, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class WebhookRecorder:
    """Stands in for the webhook destinations behind an httpx.MockTransport."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.missing: set[str] = set()
        self.rejecting: set[str] = set()
        self.unreachable: set[str] = set()
        self.redirecting: set[str] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url in self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        if url in self.redirecting:
            return httpx.Response(301, headers={"Location": url.replace("http://", "https://", 1)})
        if url in self.missing:
            return httpx.Response(404, json={"message": "Unknown Webhook", "code": 10015})
        if request.method == "GET":
            return httpx.Response(200, json={"id": "1", "token": "aaa", "type": 1})
        if url in self.rejecting:
            return httpx.Response(400, json={"message": "Invalid Form Body"})
        return httpx.Response(204)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def posts(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]

    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]


@pytest.fixture
def clock():
    return FakeClock(WEDNESDAY)


@pytest.fixture
def recorder():
    return WebhookRecorder()


@pytest.fixture
async def store(tmp_path, clock):
    entry_store = EntryStore(str(tmp_path / "entries.db"), tz=LA, clock=clock)
    await entry_store.init_tables()
    return entry_store


@pytest.fixture
async def dispatcher(recorder):
    webhook_dispatcher = WebhookDispatcher([HOOK_A, HOOK_B], recorder.client())
    yield webhook_dispatcher
    await webhook_dispatcher.aclose()


@pytest.fixture
def ctx(store, dispatcher, clock):
    return AppContext(
        auth=AuthGate(SECRET),
        store=store,
        compiler=DigestCompiler(LA),
        dispatcher=dispatcher,
        clock=clock,
    )


@pytest.fixture
def app(ctx):
    return create_app(ctx)


@pytest.fixture
def client(app):
    return app.test_client()
