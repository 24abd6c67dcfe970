import logging
import sys
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from contact_agent.config import Settings
from contact_agent.exceptions.custom import (
    AuthorizationError,
    ExtractionError,
    LoginError,
    NavigationError,
    TaskValidationError,
)
from contact_agent.exceptions.handlers import (
    authorization_error_handler,
    extraction_error_handler,
    login_error_handler,
    navigation_error_handler,
    request_validation_error_handler,
    validation_error_handler,
)
from contact_agent.mappers.exclusion import Blocklist
from contact_agent.routers.tasks import router as tasks_router
from contact_agent.schemas.extraction import FieldKind
from contact_agent.services.browser import BrowserRuntime
from contact_agent.services.dispatcher import ResultDispatcher
from contact_agent.services.extraction import ExtractionPipeline
from contact_agent.services.session_manager import SessionManager
from contact_agent.services.session_store import SessionStore
from contact_agent.services.tasks import TaskService


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    store = SessionStore(settings.session_state_path)
    if settings.session_state_b64:
        store.seed_from_b64(settings.session_state_b64)

    async with httpx.AsyncClient(timeout=settings.callback_timeout) as client:
        runtime = BrowserRuntime(
            store,
            headless=settings.headless,
            navigation_timeout=settings.navigation_timeout,
            settle_timeout=settings.settle_timeout,
        )
        sessions = SessionManager(
            store,
            username=settings.google_user,
            password=settings.google_pass,
            login_url=settings.login_url,
            cookie_domain=settings.identity_cookie_domain,
            cookie_names=settings.identity_cookie_names,
            policy=settings.login_policy,
        )
        pipeline = ExtractionPipeline(
            Blocklist.from_settings(settings),
            poll_interval=settings.poll_interval,
            poll_deadline=settings.poll_deadline,
            panel_keywords=settings.panel_keywords,
            absence_markers={
                FieldKind.phone: settings.no_phone_markers,
                FieldKind.email: settings.no_email_markers,
            },
        )
        dispatcher = ResultDispatcher(client, settings.callback_url)

        app.state.settings = settings
        app.state.session_manager = sessions
        app.state.pipeline = pipeline
        app.state.dispatcher = dispatcher
        app.state.task_service = TaskService(
            runtime,
            sessions,
            pipeline,
            dispatcher,
            screenshot_path=settings.screenshot_path,
            request_deadline=settings.request_deadline,
        )

        yield

        await dispatcher.drain()


app = FastAPI(title="Contact Agent", lifespan=lifespan)

app.add_exception_handler(TaskValidationError, validation_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_error_handler)
app.add_exception_handler(AuthorizationError, authorization_error_handler)
app.add_exception_handler(NavigationError, navigation_error_handler)
app.add_exception_handler(LoginError, login_error_handler)
app.add_exception_handler(ExtractionError, extraction_error_handler)

app.include_router(tasks_router)
