import base64
import binascii
import json
import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


class SessionStore:
    """Owns the persisted browser session state file.

    The file is only ever replaced wholesale: writes go to a temp file in the
    same directory which is then renamed over the target, so readers see
    either the previous snapshot or the new one.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file() and self._path.stat().st_size > 0

    def load(self) -> dict | None:
        """Return the stored state, or None if missing or unreadable."""
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError:
            logger.warning("Could not read session state %s", self._path, exc_info=True)
            return None

        try:
            state = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt session state %s", self._path)
            return None
        if not isinstance(state, dict):
            logger.warning("Ignoring malformed session state %s", self._path)
            return None
        return state

    def write(self, state: dict) -> None:
        self.write_bytes(json.dumps(state).encode("utf-8"))

    def write_bytes(self, data: bytes) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.info("Saved session state to %s", self._path)

    def seed_from_b64(self, blob: str) -> bool:
        """Write a base64 encoded state once. Never overwrites an existing file."""
        if not blob or self.exists():
            return False
        try:
            data = base64.b64decode(blob, validate=True)
            json.loads(data)
        except (binascii.Error, ValueError):
            logger.error("Session state seed is not valid base64 JSON, skipping")
            return False
        self.write_bytes(data)
        logger.info("Seeded session state from environment")
        return True
