"""
adapters.cli.session - Local CLI identity storage.

The user id and current session id are stored in
~/.finance-coach/session.json so consecutive `ask` and `chat` runs
continue the same conversation (and share its cached context).
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional
from uuid import uuid4

_SESSION_DIR = Path.home() / ".finance-coach"
_SESSION_FILE = _SESSION_DIR / "session.json"


@dataclass
class Session:
    user_id: str
    session_id: str


def new_session_id() -> str:
    return f"cli-{uuid4().hex[:12]}"


def load_session() -> Optional[Session]:
    """Return the stored session, or None if none was saved yet."""
    if not _SESSION_FILE.exists():
        return None
    try:
        data = json.loads(_SESSION_FILE.read_text(encoding="utf-8"))
        return Session(**data)
    except (OSError, ValueError, TypeError):
        return None


def save_session(session: Session) -> None:
    """Persist the session to disk."""
    _SESSION_DIR.mkdir(parents=True, exist_ok=True)
    _SESSION_FILE.write_text(
        json.dumps(asdict(session), indent=2), encoding="utf-8"
    )


def resolve_session(
    user_id: Optional[str],
    session_id: Optional[str],
    new: bool = False,
) -> Session:
    """Merge command-line options with the stored session and save the result."""
    stored = load_session()
    user = user_id or (stored.user_id if stored else "demo")
    if new or (stored is None) or (stored.user_id != user and not session_id):
        sid = session_id or new_session_id()
    else:
        sid = session_id or stored.session_id
    session = Session(user_id=user, session_id=sid)
    save_session(session)
    return session
