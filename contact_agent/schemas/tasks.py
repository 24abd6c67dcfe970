from enum import StrEnum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

REQUIRED = "Required"  # field not found or not applicable


class TaskKind(StrEnum):
    title = "title"
    screenshot = "screenshot"
    phone = "phone"
    email = "email"
    phone_email = "phone+email"


# Task names used by earlier clients
TASK_ALIASES = {"extract-phone": TaskKind.phone}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskRequest(_CamelModel):
    task: str | None = None
    url: str | None = None
    callback_url: str | None = None


class TitleResult(_CamelModel):
    title: str
    source_url: str


class ScreenshotResult(_CamelModel):
    message: str
    file: str
    source_url: str


class ExtractionResult(_CamelModel):
    ok: bool
    phone: str | None = None  # value or REQUIRED
    email: str | None = None  # value or REQUIRED
    source_url: str
    elapsed_ms: int | None = None


TaskResult = TitleResult | ScreenshotResult | ExtractionResult
