"""On-disk preference, settings and shortcut stores."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .bridge.base import Shortcut, ShortcutDraft
from .exceptions import PageChatError

LOGGER = logging.getLogger(__name__)


class PersistenceError(PageChatError):
    """Raised when persistence operations fail."""


class PersistenceFormatError(PersistenceError):
    """Raised when a persisted payload cannot be decoded safely."""


def _enforce_permissions(path: Path, mode: int = 0o600) -> None:
    """Set POSIX permissions on a file or directory; silently ignores failures."""
    if os.name != "posix":
        return
    try:
        path.chmod(mode)
    except OSError:
        pass


class _JsonFile:
    """A single JSON document with private permissions."""

    def __init__(self, path: str | Path, empty: str) -> None:
        self.path = Path(path).expanduser()
        self._empty = empty

    def _ensure_paths(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        _enforce_permissions(self.path.parent, 0o700)
        if not self.path.exists():
            self.path.write_text(self._empty, encoding="utf-8")
        _enforce_permissions(self.path)

    def read(self) -> Any:
        try:
            self._ensure_paths()
            return json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise PersistenceFormatError(f"Invalid JSON in {self.path}: {exc}") from exc
        except OSError as exc:
            raise PersistenceError(f"Unable to read {self.path}: {exc}") from exc

    def write(self, payload: Any) -> None:
        try:
            self._ensure_paths()
            self.path.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True),
                encoding="utf-8",
            )
        except OSError as exc:
            raise PersistenceError(f"Unable to write {self.path}: {exc}") from exc
        _enforce_permissions(self.path)


class PreferenceStore:
    """Small key/value store backed by a JSON object."""

    def __init__(self, path: str | Path) -> None:
        self._file = _JsonFile(path, "{}")

    @property
    def path(self) -> Path:
        return self._file.path

    def _load(self) -> dict[str, Any]:
        try:
            payload = self._file.read()
        except PersistenceFormatError as exc:
            LOGGER.warning(
                "preferences.corrupt",
                extra={"event": "preferences.corrupt", "path": str(self.path), "error": str(exc)},
            )
            return {}
        return payload if isinstance(payload, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._file.write(data)


class ShortcutStore:
    """Ordered pinned shortcuts persisted as a JSON list."""

    def __init__(self, path: str | Path) -> None:
        self._file = _JsonFile(path, "[]")

    @property
    def path(self) -> Path:
        return self._file.path

    def _load(self) -> list[Shortcut]:
        payload = self._file.read()
        if not isinstance(payload, list):
            raise PersistenceFormatError(f"Expected a list of shortcuts in {self.path}.")
        rows: list[Shortcut] = []
        for item in payload:
            try:
                rows.append(Shortcut.model_validate(item))
            except ValidationError:
                continue
        return rows

    def _store(self, rows: list[Shortcut]) -> None:
        for position, row in enumerate(rows):
            row.sort_order = position
        self._file.write([row.model_dump() for row in rows])

    def list(self) -> list[Shortcut]:
        """Return shortcuts in persisted order."""
        rows = self._load()
        return sorted(
            rows,
            key=lambda row: (row.sort_order if row.sort_order is not None else len(rows), row.id),
        )

    def save(self, draft: ShortcutDraft) -> int:
        """Insert or update a shortcut and return its id."""
        if not draft.is_complete:
            raise PersistenceError("A shortcut needs both a title and a url.")
        rows = self.list()
        if draft.id is not None:
            for row in rows:
                if row.id == draft.id:
                    row.title = draft.title
                    row.url = draft.url
                    row.color = draft.color
                    row.icon = draft.icon
                    self._store(rows)
                    return row.id
        new_id = max((row.id for row in rows), default=0) + 1
        rows.append(
            Shortcut(
                id=new_id,
                title=draft.title,
                url=draft.url,
                color=draft.color,
                icon=draft.icon,
            )
        )
        self._store(rows)
        return new_id

    def delete(self, shortcut_id: int) -> None:
        rows = [row for row in self.list() if row.id != shortcut_id]
        self._store(rows)

    def reorder(self, ids: list[int]) -> None:
        """Persist the order given by ``ids``; unknown ids are ignored."""
        rows = self.list()
        by_id = {row.id: row for row in rows}
        ordered = [by_id.pop(shortcut_id) for shortcut_id in ids if shortcut_id in by_id]
        ordered.extend(row for row in rows if row.id in by_id)
        self._store(ordered)
