from typing import Annotated, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

CommaList = Annotated[list[str], NoDecode]


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "frozen": True}

    api_token: str = ""
    log_level: str = "INFO"

    # Identity provider
    google_user: str = ""
    google_pass: str = ""
    login_url: str = "https://accounts.google.com/"
    identity_cookie_domain: str = "google.com"
    identity_cookie_names: CommaList = ["SID", "__Secure-1PSID", "__Secure-3PSID"]
    login_policy: Literal["conservative", "eager"] = "conservative"

    # Persisted session state
    session_state_path: str = "/tmp/google-state.json"
    session_state_b64: str = ""

    # Result delivery
    callback_url: str = ""
    callback_timeout: float = 10.0

    # Browser (seconds)
    headless: bool = True
    navigation_timeout: float = 30.0
    settle_timeout: float = 15.0
    screenshot_path: str = "screenshot.png"

    # Extraction
    poll_interval: float = 0.5
    poll_deadline: float = 15.0
    panel_keywords: CommaList = ["summary", "conversation"]
    no_phone_markers: CommaList = ["no phone number"]
    no_email_markers: CommaList = ["no email address"]
    blocked_phones: CommaList = []
    blocked_emails: CommaList = []
    blocked_email_domains: CommaList = ["google.com", "gstatic.com", "googleusercontent.com"]

    @field_validator(
        "identity_cookie_names",
        "panel_keywords",
        "no_phone_markers",
        "no_email_markers",
        "blocked_phones",
        "blocked_emails",
        "blocked_email_domains",
        mode="before",
    )
    @classmethod
    def _split_commas(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def has_credentials(self) -> bool:
        return bool(self.google_user and self.google_pass)

    @property
    def request_deadline(self) -> float:
        """Upper bound for one extraction request after the browser is up."""
        return self.navigation_timeout + self.settle_timeout + self.poll_deadline + 5.0
