from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict

from contact_agent.config import Settings
from contact_agent.mappers.patterns import COUNTRY_CODE
from contact_agent.schemas.extraction import Candidate, FieldKind


def normalize_phone(raw: str, country_code: str = COUNTRY_CODE) -> str:
    """Digits only, international prefix rewritten to the leading-zero national form."""
    digits = "".join(c for c in raw if c.isdigit())
    if digits.startswith("00" + country_code):
        digits = digits[2:]
    if digits.startswith(country_code):
        national = digits[len(country_code):]
        # "+44 (0)20 ..." already carries the trunk zero
        return national if national.startswith("0") else "0" + national
    return digits


def normalize_email(raw: str) -> str:
    return raw.strip().lower()


def normalize(candidate: Candidate) -> str:
    if candidate.kind == FieldKind.phone:
        return normalize_phone(candidate.value)
    return normalize_email(candidate.value)


class Blocklist(BaseModel):
    model_config = ConfigDict(frozen=True)

    phones: frozenset[str] = frozenset()  # normalized national form
    emails: frozenset[str] = frozenset()  # lowercased addresses
    email_domains: tuple[str, ...] = ()  # lowercased domain suffixes
    login_identity: str | None = None  # lowercased

    @classmethod
    def build(
        cls,
        phones: Iterable[str] = (),
        emails: Iterable[str] = (),
        email_domains: Iterable[str] = (),
        login_identity: str | None = None,
    ) -> "Blocklist":
        return cls(
            phones=frozenset(p for p in (normalize_phone(x) for x in phones) if p),
            emails=frozenset(normalize_email(e) for e in emails if e.strip()),
            email_domains=tuple(d.strip().lower().lstrip(".") for d in email_domains if d.strip()),
            login_identity=normalize_email(login_identity) if login_identity else None,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Blocklist":
        return cls.build(
            phones=settings.blocked_phones,
            emails=settings.blocked_emails,
            email_domains=settings.blocked_email_domains,
            login_identity=settings.google_user or None,
        )

    def _blocked_domain(self, domain: str) -> bool:
        return any(domain == d or domain.endswith("." + d) for d in self.email_domains)

    def excludes(self, candidate: Candidate) -> bool:
        value = normalize(candidate)
        if candidate.kind == FieldKind.phone:
            return value in self.phones
        if value in self.emails or value == self.login_identity:
            return True
        return self._blocked_domain(value.rpartition("@")[2])


def first_allowed(candidates: Iterable[Candidate], blocklist: Blocklist) -> Candidate | None:
    """Return the earliest candidate the blocklist does not exclude."""
    for candidate in candidates:
        if not blocklist.excludes(candidate):
            return candidate
    return None
