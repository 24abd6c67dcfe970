"""
Capture an authenticated browser session by hand.

Opens a visible browser on the login page. Log in fully, then press Enter in
the terminal and the session state is written where the service reads it.

Usage:
  contact-agent-capture-state --out /tmp/google-state.json
  contact-agent-capture-state --out state.json --print-b64   # blob for SESSION_STATE_B64

Exit codes:
  0 - state saved
  1 - browser or write failure
"""

import argparse
import asyncio
import base64
import json
import logging
import sys

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from contact_agent.config import Settings
from contact_agent.services.session_store import SessionStore


async def capture(login_url: str, store: SessionStore, *, channel: str | None = None) -> dict:
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(
            headless=False,
            channel=channel,
            args=["--disable-blink-features=AutomationControlled"],
        )
        try:
            context = await browser.new_context()
            page = await context.new_page()
            await page.goto(login_url, wait_until="domcontentloaded")

            await asyncio.to_thread(
                input, "Log in in the browser window, then press Enter here... "
            )
            state = await context.storage_state()
        finally:
            await browser.close()

    store.write(state)
    return state


def main(argv: list[str] | None = None) -> int:
    settings = Settings()
    parser = argparse.ArgumentParser(
        prog="contact-agent-capture-state",
        description="Log in by hand and save the browser session state",
    )
    parser.add_argument("--out", "-o", default=settings.session_state_path, help="Where to write the state file")
    parser.add_argument("--login-url", default=settings.login_url, help="Page to open for login")
    parser.add_argument("--channel", default=None, help="Browser channel, e.g. chrome (default: bundled chromium)")
    parser.add_argument("--print-b64", action="store_true", help="Also print the state as base64 for SESSION_STATE_B64")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    store = SessionStore(args.out)
    try:
        state = asyncio.run(capture(args.login_url, store, channel=args.channel))
    except (PlaywrightError, OSError) as exc:
        print(f"Capture failed: {exc}", file=sys.stderr)
        return 1

    print(f"Saved {args.out} ({len(state.get('cookies', []))} cookies)")
    if args.print_b64:
        print(base64.b64encode(json.dumps(state).encode("utf-8")).decode("ascii"))
    return 0


if __name__ == "__main__":
    sys.exit(main())
