import asyncio
import logging
from collections.abc import Sequence
from enum import StrEnum
from typing import Literal

from playwright.async_api import BrowserContext, Page
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from contact_agent.exceptions.custom import LoginError
from contact_agent.services.session_store import SessionStore

logger = logging.getLogger(__name__)

_EMAIL_INPUT = 'input[type="email"]'
_PASSWORD_INPUT = 'input[type="password"]'
_NEXT_BUTTON = 'button:has-text("Next"), div[role="button"]:has-text("Next")'

_PASSWORD_PROMPT_TIMEOUT_MS = 15_000
_SETTLE_TIMEOUT_MS = 20_000


class AuthenticationOutcome(StrEnum):
    authenticated = "authenticated"  # identity cookie already present
    adopted = "adopted"  # cookies taken from state persisted by another request
    logged_in = "logged_in"
    no_credentials = "no_credentials"
    stale_state = "stale_state"  # state file exists but carries no valid identity
    already_attempted = "already_attempted"


def has_identity_cookie(
    cookies: Sequence[dict], domain: str, names: Sequence[str] = ()
) -> bool:
    """True when a cookie for the identity provider is present.

    With ``names`` empty any cookie on the provider's domain counts.
    """
    domain = domain.lower().lstrip(".")
    for cookie in cookies:
        cookie_domain = (cookie.get("domain") or "").lower().lstrip(".")
        if cookie_domain != domain and not cookie_domain.endswith("." + domain):
            continue
        if not names or cookie.get("name") in names:
            return True
    return False


class SessionManager:
    """Keeps one reusable authenticated identity for all requests.

    Login is attempted at most once per absence episode: after an attempt,
    no further login happens until some request sees the identity cookie
    again.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        username: str = "",
        password: str = "",
        login_url: str = "https://accounts.google.com/",
        cookie_domain: str = "google.com",
        cookie_names: Sequence[str] = (),
        policy: Literal["conservative", "eager"] = "conservative",
    ) -> None:
        self._store = store
        self._username = username
        self._password = password
        self._login_url = login_url
        self._cookie_domain = cookie_domain
        self._cookie_names = tuple(cookie_names)
        self._policy = policy
        self._lock = asyncio.Lock()
        self._login_attempted = False

    @property
    def has_credentials(self) -> bool:
        return bool(self._username and self._password)

    def _signal(self, cookies: Sequence[dict]) -> bool:
        return has_identity_cookie(cookies, self._cookie_domain, self._cookie_names)

    async def ensure_session(
        self, context: BrowserContext, page: Page, *, where: str | None = None
    ) -> AuthenticationOutcome:
        if self._signal(await context.cookies()):
            self._login_attempted = False
            return AuthenticationOutcome.authenticated

        async with self._lock:
            # Another request may have logged in while we waited
            persisted = self._store.load()
            if persisted and self._signal(persisted.get("cookies") or []):
                if await self._adopt(context, persisted):
                    return AuthenticationOutcome.adopted

            if not self.has_credentials:
                logger.info("No identity cookie and no credentials, continuing unauthenticated")
                return AuthenticationOutcome.no_credentials
            if self._policy == "conservative" and self._store.exists():
                logger.warning(
                    "Persisted session at %s has no identity cookie, not logging in",
                    self._store.path,
                )
                return AuthenticationOutcome.stale_state
            if self._login_attempted:
                logger.info("Login already attempted in this process, continuing unauthenticated")
                return AuthenticationOutcome.already_attempted

            self._login_attempted = True
            await self._login(context, page, where=where)
            return AuthenticationOutcome.logged_in

    async def _adopt(self, context: BrowserContext, persisted: dict) -> bool:
        try:
            await context.add_cookies(persisted["cookies"])
        except PlaywrightError:
            logger.warning("Could not adopt persisted cookies", exc_info=True)
            return False
        # Expired cookies are dropped by the browser
        if not self._signal(await context.cookies()):
            return False
        logger.info("Adopted identity cookies from persisted session")
        return True

    async def _login(self, context: BrowserContext, page: Page, *, where: str | None) -> None:
        logger.info("Identity cookie absent, logging in at %s", self._login_url)
        try:
            await page.goto(self._login_url, wait_until="domcontentloaded")

            if await page.locator(_EMAIL_INPUT).count():
                await page.fill(_EMAIL_INPUT, self._username)
                await page.click(_NEXT_BUTTON)
                await page.wait_for_load_state("domcontentloaded")

                try:
                    await page.wait_for_selector(_PASSWORD_INPUT, timeout=_PASSWORD_PROMPT_TIMEOUT_MS)
                except PlaywrightTimeoutError as exc:
                    raise LoginError("Password prompt did not appear", where=where) from exc
                await page.fill(_PASSWORD_INPUT, self._password)
                await page.click(_NEXT_BUTTON)
                await page.wait_for_load_state("domcontentloaded")

            try:
                await page.wait_for_load_state("networkidle", timeout=_SETTLE_TIMEOUT_MS)
            except PlaywrightTimeoutError:
                logger.debug("Login page did not settle, checking cookies anyway")

            if not self._signal(await context.cookies()):
                raise LoginError("Identity provider did not issue a session cookie", where=where)

            state = await context.storage_state()
        except PlaywrightError as exc:
            raise LoginError(f"Login sequence failed: {exc.message}", where=where) from exc

        await asyncio.to_thread(self._store.write, state)
        logger.info("Logged in and persisted session state")
