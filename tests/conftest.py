from contextlib import asynccontextmanager

import httpx
import pytest
from httpx import ASGITransport

from contact_agent.exceptions.custom import NavigationError
from contact_agent.services.browser import BrowserSession


class FakeReader:
    """Serves successive body texts; the last one repeats once exhausted."""

    def __init__(self, bodies, blocks=None, markup=""):
        self._bodies = list(bodies) or [""]
        self._blocks = blocks or []
        self._markup = markup
        self.body_calls = 0
        self.block_calls = 0
        self.markup_calls = 0

    async def body_text(self):
        text = self._bodies[min(self.body_calls, len(self._bodies) - 1)]
        self.body_calls += 1
        return text

    async def blocks(self):
        self.block_calls += 1
        return self._blocks

    async def raw_markup(self):
        self.markup_calls += 1
        return self._markup


class FakeClock:
    def __init__(self):
        self.t = 0.0
        self.sleeps = []

    def now(self):
        return self.t

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.t += seconds


class FakeContext:
    def __init__(self, cookies=None):
        self._cookies = list(cookies or [])

    async def cookies(self):
        return list(self._cookies)

    async def add_cookies(self, cookies):
        self._cookies.extend(cookies)

    async def storage_state(self):
        return {"cookies": list(self._cookies), "origins": []}


class FakePage:
    def __init__(self):
        self.body = ""
        self.screenshots = []

    async def title(self):
        return "Fake Title"

    async def screenshot(self, path, full_page=False):
        self.screenshots.append((path, full_page))


class FakeRuntime:
    """Stands in for BrowserRuntime; ``pages`` maps URL to rendered body text."""

    def __init__(self, pages):
        self.pages = pages
        self.opened = 0
        self.closed = 0
        self.navigated = []
        self.last_page = None

    @asynccontextmanager
    async def session(self, *, with_state=False):
        self.opened += 1
        self.last_page = FakePage()
        try:
            yield BrowserSession(context=FakeContext(), page=self.last_page)
        finally:
            self.closed += 1

    async def navigate(self, page, url, *, settle=False, where=None):
        self.navigated.append((url, settle))
        if url not in self.pages:
            raise NavigationError(f"Could not load {url}", where=where)
        page.body = self.pages[url]
        return None


def fake_reader_factory(page, _response):
    return FakeReader([page.body], markup=page.body)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def mock_env(monkeypatch, tmp_path):
    monkeypatch.setenv("API_TOKEN", "test-token")
    monkeypatch.setenv("SESSION_STATE_PATH", str(tmp_path / "state.json"))
    monkeypatch.setenv("SESSION_STATE_B64", "")
    monkeypatch.setenv("GOOGLE_USER", "")
    monkeypatch.setenv("GOOGLE_PASS", "")
    monkeypatch.setenv("CALLBACK_URL", "")
    monkeypatch.setenv("BLOCKED_PHONES", "")
    monkeypatch.setenv("POLL_INTERVAL", "0.01")
    monkeypatch.setenv("POLL_DEADLINE", "0.05")
    monkeypatch.setenv("SCREENSHOT_PATH", str(tmp_path / "shot.png"))


@pytest.fixture
def pages():
    return {}


@pytest.fixture
def fake_runtime(pages):
    return FakeRuntime(pages)


@pytest.fixture
def client_factory(mock_env, fake_runtime, monkeypatch):
    from contact_agent.main import app, lifespan
    from contact_agent.services.tasks import TaskService

    @asynccontextmanager
    async def factory(**env):
        for key, value in env.items():
            monkeypatch.setenv(key, value)

        async with lifespan(app):
            settings = app.state.settings
            app.state.task_service = TaskService(
                fake_runtime,
                app.state.session_manager,
                app.state.pipeline,
                app.state.dispatcher,
                screenshot_path=settings.screenshot_path,
                request_deadline=settings.request_deadline,
                reader_factory=fake_reader_factory,
            )
            async with httpx.AsyncClient(
                transport=ASGITransport(app=app),
                base_url="http://test",
            ) as c:
                yield c

    return factory


@pytest.fixture
async def client(client_factory):
    async with client_factory() as c:
        yield c


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer test-token"}
