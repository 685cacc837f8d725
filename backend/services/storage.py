"""
Gemelo Storage - Profile and survey history persistence

Users and survey response records live in a single JSON document under
DATA_DIR (default ./data/gemelo.json). Writes go through a temp file and
rename so a crash never leaves a half-written store.

Survey answers are never stored: record_response() always persists
answer=None. The client keeps the text it was shown.
"""

import copy
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from errors import NotFoundError, ValidationError
from services.i18n import SUPPORTED_LANGUAGES

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

DEMO_USER = {
    "username": "demo",
    "language": "es",
    "demographics": {
        "age": 28,
        "occupation": "Software Engineer",
        "location": "San Francisco",
    },
    "preferences": {
        "tone": "Professional",
        "interests": ["Technology", "AI", "Innovation"],
    },
}


@dataclass(frozen=True)
class UserProfile:
    """Immutable per-request snapshot of a user's digital twin."""

    id: int
    username: str = ""
    language: str = "es"
    demographics: Mapping[str, Any] = field(default_factory=dict)
    preferences: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Read-only views over private copies so the core cannot mutate the store
        object.__setattr__(self, "demographics", MappingProxyType(copy.deepcopy(dict(self.demographics or {}))))
        object.__setattr__(self, "preferences", MappingProxyType(copy.deepcopy(dict(self.preferences or {}))))

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "UserProfile":
        demographics = record.get("demographics")
        preferences = record.get("preferences")
        return cls(
            id=int(record["id"]),
            username=record.get("username", ""),
            language=record.get("language") or "es",
            demographics=demographics if isinstance(demographics, dict) else {},
            preferences=preferences if isinstance(preferences, dict) else {},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "language": self.language,
            "demographics": copy.deepcopy(dict(self.demographics)),
            "preferences": copy.deepcopy(dict(self.preferences)),
        }


class JsonFileStore:
    """Profile store and history store backed by one JSON file.

    Profile store:  get_user(id) -> UserProfile | None
    History store:  record_response(user_id, question, model_used, status)
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._data = self._load()

    def _empty(self) -> Dict[str, Any]:
        return {"users": [], "surveyResponses": [], "nextUserId": 1, "nextResponseId": 1}

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return self._empty()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to load store {self.path}: {e}")
            return self._empty()
        if not isinstance(data, dict):
            return self._empty()
        base = self._empty()
        base.update(data)
        return base

    def _save(self) -> None:
        """Atomic write. Caller holds the lock."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".gemelo-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    def get_user(self, user_id: int) -> Optional[UserProfile]:
        with self._lock:
            for record in self._data["users"]:
                if record.get("id") == user_id:
                    return UserProfile.from_record(record)
        return None

    def get_user_by_username(self, username: str) -> Optional[UserProfile]:
        with self._lock:
            for record in self._data["users"]:
                if record.get("username") == username:
                    return UserProfile.from_record(record)
        return None

    def create_user(
        self,
        username: str,
        language: str = "es",
        demographics: Optional[Dict[str, Any]] = None,
        preferences: Optional[Dict[str, Any]] = None,
    ) -> UserProfile:
        with self._lock:
            record = {
                "id": self._data["nextUserId"],
                "username": username,
                "language": language,
                "demographics": demographics or {},
                "preferences": preferences or {},
                "createdAt": datetime.now(timezone.utc).isoformat(),
            }
            self._data["nextUserId"] += 1
            self._data["users"].append(record)
            self._save()
        logger.info(f"Created user {record['id']} ({username})")
        return UserProfile.from_record(record)

    def update_profile(
        self,
        user_id: int,
        demographics: Optional[Dict[str, Any]] = None,
        preferences: Optional[Dict[str, Any]] = None,
        language: Optional[str] = None,
    ) -> UserProfile:
        """Merge profile changes into a user and persist them.

        demographics and preferences are shallow-merged over the stored
        values (a key set to None is removed); language replaces the stored one.

        Raises:
            ValidationError: unsupported language
            NotFoundError: no user with this id
        """
        if language is not None and language not in SUPPORTED_LANGUAGES:
            raise ValidationError(
                f"Unsupported language '{language}'",
                details=f"expected one of: {', '.join(SUPPORTED_LANGUAGES)}",
                parameter="language",
                received=language,
            )

        with self._lock:
            record = next((r for r in self._data["users"] if r.get("id") == user_id), None)
            if record is None:
                raise NotFoundError(f"User {user_id} not found", resource_type="user", resource_id=str(user_id))

            for key, changes in (("demographics", demographics), ("preferences", preferences)):
                if changes is None:
                    continue
                merged = dict(record.get(key) or {})
                merged.update(copy.deepcopy(changes))
                record[key] = {k: v for k, v in merged.items() if v is not None}
            if language is not None:
                record["language"] = language
            record["updatedAt"] = datetime.now(timezone.utc).isoformat()
            self._save()
            profile = UserProfile.from_record(record)

        logger.info(f"Updated profile for user {user_id}")
        return profile

    def seed_demo_user(self) -> UserProfile:
        """Create the demo user once; return the existing one afterwards."""
        existing = self.get_user_by_username(DEMO_USER["username"])
        if existing:
            return existing
        return self.create_user(
            DEMO_USER["username"],
            language=DEMO_USER["language"],
            demographics=copy.deepcopy(DEMO_USER["demographics"]),
            preferences=copy.deepcopy(DEMO_USER["preferences"]),
        )

    # -------------------------------------------------------------------------
    # Survey history
    # -------------------------------------------------------------------------

    def record_response(self, user_id: int, question: str, model_used: Optional[str], status: str) -> Dict[str, Any]:
        """Persist one survey record. The answer text is never stored."""
        with self._lock:
            record = {
                "id": self._data["nextResponseId"],
                "userId": user_id,
                "question": question,
                "answer": None,
                "modelUsed": model_used,
                "status": status,
                "createdAt": datetime.now(timezone.utc).isoformat(),
            }
            self._data["nextResponseId"] += 1
            self._data["surveyResponses"].append(record)
            self._save()
        logger.debug(f"Recorded survey response {record['id']} for user {user_id} ({status})")
        return dict(record)

    def list_responses(self, user_id: int) -> List[Dict[str, Any]]:
        """User's records, newest first."""
        with self._lock:
            records = [dict(r) for r in self._data["surveyResponses"] if r.get("userId") == user_id]
        records.sort(key=lambda r: (r.get("createdAt", ""), r.get("id", 0)), reverse=True)
        return records

    def clear_responses(self, user_id: int) -> int:
        with self._lock:
            before = len(self._data["surveyResponses"])
            self._data["surveyResponses"] = [r for r in self._data["surveyResponses"] if r.get("userId") != user_id]
            removed = before - len(self._data["surveyResponses"])
            self._save()
        logger.info(f"Cleared {removed} survey responses for user {user_id}")
        return removed


_store: Optional[JsonFileStore] = None


def get_store() -> JsonFileStore:
    """Get or create the app-wide store under runtime_config.data_dir."""
    global _store

    if _store is None:
        from config import runtime_config

        _store = JsonFileStore(Path(runtime_config.data_dir) / "gemelo.json")
    return _store
