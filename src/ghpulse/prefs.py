"""Local session state: a remembered token and per-repository preferences.

Nothing here is used by the fetch or aggregation code. The CLI builds a
``Preferences`` on top of whichever ``KeyValueStore`` it is given.
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_TOKEN_KEY = "gh_token"


class KeyValueStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the stored value, or None when the key is absent."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the key. Missing keys are ignored."""


class MemoryStore(KeyValueStore):
    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """Keeps every key in one JSON object on disk, rewritten on each change."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable preferences file %s", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")

    def get(self, key: str) -> Any | None:
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)


@dataclass
class RepoPreferences:
    completed: list[int] = field(default_factory=list)
    deferred: list[int] = field(default_factory=list)
    assigned_reviewers: dict[int, str] = field(default_factory=dict)
    show_closed: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RepoPreferences:
        data = data or {}
        return cls(
            completed=[int(n) for n in data.get("completed", [])],
            deferred=[int(n) for n in data.get("deferred", [])],
            # JSON object keys are always strings
            assigned_reviewers={int(k): v for k, v in (data.get("assigned_reviewers") or {}).items()},
            show_closed=bool(data.get("show_closed", True)),
        )

    def mark(self, number: int, flag: str | None) -> None:
        """Set a PR's flag to "completed", "deferred", or clear it with None."""
        if flag not in ("completed", "deferred", None):
            raise ValueError(f"Unknown flag: {flag!r}")
        self.completed = [n for n in self.completed if n != number]
        self.deferred = [n for n in self.deferred if n != number]
        if flag == "completed":
            self.completed.append(number)
        elif flag == "deferred":
            self.deferred.append(number)

    def flag_for(self, number: int) -> str | None:
        if number in self.completed:
            return "completed"
        if number in self.deferred:
            return "deferred"
        return None


class Preferences:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    @property
    def token(self) -> str | None:
        return self._store.get(_TOKEN_KEY)

    def remember_token(self, token: str) -> None:
        self._store.set(_TOKEN_KEY, token)

    def forget_token(self) -> None:
        self._store.delete(_TOKEN_KEY)

    @staticmethod
    def _repo_key(owner: str, repo: str) -> str:
        return f"repo:{owner}/{repo}".lower()

    def for_repo(self, owner: str, repo: str) -> RepoPreferences:
        return RepoPreferences.from_dict(self._store.get(self._repo_key(owner, repo)))

    def save_repo(self, owner: str, repo: str, prefs: RepoPreferences) -> None:
        data = asdict(prefs)
        data["assigned_reviewers"] = {str(k): v for k, v in prefs.assigned_reviewers.items()}
        self._store.set(self._repo_key(owner, repo), data)
