"""Persist conversation sessions as JSON snapshots under ``<DATA_DIR>/sessions``."""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import (
    List,
    Optional,
)

from pydantic import ValidationError

from rapidcli.core.schema import (
    ConversationSession,
    ConversationSessionSummary,
)

logger = logging.getLogger(__name__)

_INVALID_ID_CHARS = re.compile(r"[^a-z0-9._-]+")


def normalize_id(session_id: str) -> str:
    """Lower-case *session_id* and replace anything outside ``[a-z0-9._-]`` with dashes."""
    normalized = _INVALID_ID_CHARS.sub("-", session_id.strip().lower()).strip("-.")
    if not normalized:
        raise ValueError("Session id cannot be empty.")
    return normalized


class SessionStore:
    """One JSON file per session, written atomically."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory).expanduser()

    def path_for(self, session_id: str) -> Path:
        return self.directory / f"{normalize_id(session_id)}.json"

    def exists(self, session_id: str) -> bool:
        return self.path_for(session_id).is_file()

    def save(self, session: ConversationSession) -> Path:
        """Write *session* to disk, replacing any previous snapshot."""
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(session.id)
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=".session-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(session.to_json())
            os.replace(tmp, path)
        except OSError:
            logger.error("Failed to save session %s", session.id)
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        logger.debug("Saved session %s to %s", session.id, path)
        return path

    def load(self, session_id: str) -> Optional[ConversationSession]:
        """Return the stored session, or ``None`` if there is none."""
        path = self.path_for(session_id)
        if not path.is_file():
            return None
        try:
            return ConversationSession.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError):
            logger.error("Failed to load session %s from %s", session_id, path)
            raise

    def list_sessions(self) -> List[ConversationSessionSummary]:
        """Summaries of every readable session, most recently updated first."""
        if not self.directory.is_dir():
            return []
        summaries = []
        for path in self.directory.glob("*.json"):
            try:
                session = ConversationSession.model_validate_json(path.read_text(encoding="utf-8"))
            except (OSError, ValidationError) as e:
                logger.warning("Skipping unreadable session file %s: %s", path.name, e)
                continue
            summaries.append(session.summary())
        summaries.sort(key=lambda s: s.updated_at, reverse=True)
        return summaries
