from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional


def _debug(msg: str) -> None:
    print(f"[session] {msg}")


def default_session_path() -> Path:
    raw = os.environ.get("AUTHCORE_SESSION_PATH")
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".authcore" / "session.json"


@dataclass(frozen=True)
class StoredSession:
    token: str
    username: str


class FileSessionStore:
    """Keeps {token, username} in a JSON file so a session survives restarts.

    A missing, unreadable or half-written file loads as "no session".
    """

    def __init__(self, path: Optional[Path | str] = None):
        self.path = Path(path) if path is not None else default_session_path()

    def load(self) -> Optional[StoredSession]:
        if not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            _debug(f"Ignoring unreadable session file {self.path}: {e!r}")
            return None
        if not isinstance(raw, dict):
            return None
        token = str(raw.get("token") or "").strip()
        username = str(raw.get("username") or "").strip()
        if not token or not username:
            return None
        return StoredSession(token=token, username=username)

    def save(self, session: StoredSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(asdict(session)), encoding="utf-8")
        # Bearer token: owner-only.
        os.chmod(tmp, 0o600)
        os.replace(tmp, self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
