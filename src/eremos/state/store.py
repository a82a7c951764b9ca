"""
Session storage abstraction.

Separates persistence from the run engine for testability.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from .schema import GameSession

logger = logging.getLogger(__name__)


@runtime_checkable
class SessionStore(Protocol):
    """
    Storage interface for game sessions.

    Implementations:
    - JsonSessionStore: File-based persistence (production)
    - MemorySessionStore: In-memory storage (testing)
    """

    def save(self, session: GameSession) -> None:
        """Persist a session."""
        ...

    def load(self, session_id: str) -> GameSession | None:
        """Load a session by ID. Returns None if not found."""
        ...

    def delete(self, session_id: str) -> bool:
        """Delete a session. Returns True if deleted."""
        ...

    def list_all(self) -> list[dict]:
        """List all sessions with metadata."""
        ...

    def exists(self, session_id: str) -> bool:
        """Check if a session exists."""
        ...


class JsonSessionStore:
    """
    File-based session storage using JSON.

    Keeps a .bak copy of the previous save and supports loading by
    ID prefix.
    """

    def __init__(self, saves_dir: Path | str = "saves"):
        self.saves_dir = Path(saves_dir)
        self.saves_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        return self.saves_dir / f"{session_id}.json"

    def save(self, session: GameSession) -> None:
        """Save session to JSON file with backup."""
        session.save_checkpoint()
        save_file = self._path(session.id)

        if save_file.exists():
            backup = save_file.with_suffix(".json.bak")
            backup.write_text(save_file.read_text(encoding="utf-8"), encoding="utf-8")

        save_file.write_text(session.model_dump_json(indent=2), encoding="utf-8")

    def load(self, session_id: str) -> GameSession | None:
        """Load session by full ID or unique prefix."""
        save_file = self._path(session_id)

        if not save_file.exists():
            for f in self.saves_dir.glob("*.json"):
                if f.name.startswith("."):
                    continue
                if f.stem.startswith(session_id):
                    save_file = f
                    break

        if not save_file.exists():
            return None

        try:
            data = json.loads(save_file.read_text(encoding="utf-8"))
            return GameSession.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Could not load session %s: %s", save_file.name, e)
            return None

    def delete(self, session_id: str) -> bool:
        save_file = self._path(session_id)
        if save_file.exists():
            save_file.unlink()
            return True
        return False

    def list_all(self) -> list[dict]:
        """
        List all sessions, most recently modified first.

        Returns list of dicts with: id, profile, in_run, saved_at
        """
        sessions = []

        for f in sorted(
            self.saves_dir.glob("*.json"),
            key=lambda x: x.stat().st_mtime,
            reverse=True,
        ):
            if f.name.startswith("."):
                continue
            try:
                data = json.loads(f.read_text(encoding="utf-8"))
                profile = data.get("profile") or {}
                sessions.append({
                    "id": data.get("id", f.stem),
                    "profile": profile.get("name", "Commander"),
                    "in_run": data.get("run") is not None,
                    "saved_at": datetime.fromisoformat(
                        data.get("saved_at", "2000-01-01")
                    ),
                })
            except (json.JSONDecodeError, ValueError):
                continue

        return sessions

    def exists(self, session_id: str) -> bool:
        return self._path(session_id).exists()


class MemorySessionStore:
    """
    In-memory session storage for testing.

    Saves a serialized copy so later mutation of the live session does not
    leak into what was stored.
    """

    def __init__(self):
        self.sessions: dict[str, str] = {}

    def save(self, session: GameSession) -> None:
        session.save_checkpoint()
        self.sessions[session.id] = session.model_dump_json()

    def load(self, session_id: str) -> GameSession | None:
        if session_id in self.sessions:
            return GameSession.model_validate_json(self.sessions[session_id])

        for sid, payload in self.sessions.items():
            if sid.startswith(session_id):
                return GameSession.model_validate_json(payload)

        return None

    def delete(self, session_id: str) -> bool:
        if session_id in self.sessions:
            del self.sessions[session_id]
            return True
        return False

    def list_all(self) -> list[dict]:
        sessions = []
        for payload in self.sessions.values():
            session = GameSession.model_validate_json(payload)
            sessions.append({
                "id": session.id,
                "profile": session.profile.name,
                "in_run": session.run is not None,
                "saved_at": session.saved_at,
            })
        sessions.sort(key=lambda x: x["saved_at"], reverse=True)
        return sessions

    def exists(self, session_id: str) -> bool:
        return session_id in self.sessions

    def clear(self) -> None:
        """Clear all sessions (test utility)."""
        self.sessions.clear()
