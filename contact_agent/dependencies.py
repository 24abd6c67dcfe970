import secrets
from typing import Annotated

from fastapi import Depends, Request

from contact_agent.config import Settings
from contact_agent.exceptions.custom import AuthorizationError
from contact_agent.services.tasks import TaskService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_task_service(request: Request) -> TaskService:
    return request.app.state.task_service


SettingsDep = Annotated[Settings, Depends(get_settings)]
TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]


def require_bearer_token(request: Request, settings: SettingsDep) -> None:
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if not settings.api_token or scheme.lower() != "bearer":
        raise AuthorizationError()
    if not secrets.compare_digest(token.strip().encode(), settings.api_token.encode()):
        raise AuthorizationError()


BearerAuth = Depends(require_bearer_token)
