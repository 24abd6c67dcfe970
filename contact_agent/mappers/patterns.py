"""Phone and email recognizers over arbitrary page text.

Both matchers return every candidate in document order. Input longer than
``MAX_TEXT`` characters is truncated, and non-string input yields no
candidates, so callers can feed them whatever a page produced.
"""

import re
from collections.abc import Callable

from contact_agent.schemas.extraction import Candidate, FieldKind, Region

MAX_TEXT = 2_000_000
COUNTRY_CODE = "44"

# Digits may be split by one space or hyphen; never two in a row.
_PHONE_RE = re.compile(
    r"(?<![\d+])(?:"
    r"\+44[ -]?\d(?:[ -]?\d){8,9}"  # international
    r"|0[ -]?7(?:[ -]?\d){9}"  # national mobile
    # geographic: 01/02 then 8-9 digits, 10-11 in all, matching +44 plus 9-10
    r"|0[ -]?[12](?:[ -]?\d){8,9}"  # national geographic
    r")(?!\d)"
)

_EMAIL_RE = re.compile(
    r"(?<![\w.%+\-])"
    r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9\-]+(?:\.[A-Za-z0-9\-]+)*\.[A-Za-z]{2,}"
    r"(?![A-Za-z0-9\-])"
)


def _bounded(text: object) -> str:
    if not isinstance(text, str):
        return ""
    return text[:MAX_TEXT]


def _scan(pattern: re.Pattern, kind: FieldKind, text: object, region: Region) -> list[Candidate]:
    return [
        Candidate(value=m.group(0), kind=kind, region=region, position=m.start())
        for m in pattern.finditer(_bounded(text))
    ]


def find_phones(text: str, region: Region = Region.body) -> list[Candidate]:
    return _scan(_PHONE_RE, FieldKind.phone, text, region)


def find_emails(text: str, region: Region = Region.body) -> list[Candidate]:
    return _scan(_EMAIL_RE, FieldKind.email, text, region)


MATCHERS: dict[FieldKind, Callable[[str, Region], list[Candidate]]] = {
    FieldKind.phone: find_phones,
    FieldKind.email: find_emails,
}
