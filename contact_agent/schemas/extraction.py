from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class FieldKind(StrEnum):
    phone = "phone"
    email = "email"


class Region(StrEnum):
    panel = "panel"
    body = "body"
    markup = "markup"


class Candidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str  # substring as it appeared in the source
    kind: FieldKind
    region: Region
    position: int  # offset of the match within the region text


class PageBlock(BaseModel):
    """A content element of the rendered page, flattened to its text."""

    tag: str
    role: str | None = None
    text: str


class FieldOutcome(BaseModel):
    field: FieldKind
    value: str | None = None  # normalized value, None when unresolved
    strategy: str  # "absent" | "panel" | "body" | "markup" | "exhausted" | "timeout"
