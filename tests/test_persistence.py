"""Tests for the preference and shortcut stores."""

from __future__ import annotations

import json
import os
from pathlib import Path
import stat
import tempfile
import unittest

from pagechat.bridge.base import ShortcutDraft
from pagechat.persistence import (
    PersistenceError,
    PersistenceFormatError,
    PreferenceStore,
    ShortcutStore,
)


class PreferenceStoreTests(unittest.TestCase):
    def test_set_and_get_round_trip(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = PreferenceStore(Path(temp_dir) / "prefs" / "preferences.json")
            self.assertIsNone(store.get("ai_mode"))
            store.set("ai_mode", "local")
            self.assertEqual(PreferenceStore(store.path).get("ai_mode"), "local")

    def test_corrupt_file_reads_as_empty(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "preferences.json"
            path.write_text("{not json", encoding="utf-8")
            store = PreferenceStore(path)
            with self.assertLogs("pagechat.persistence", level="WARNING"):
                self.assertEqual(store.get("ai_mode", "online"), "online")

    @unittest.skipUnless(os.name == "posix", "POSIX permissions only")
    def test_files_are_private(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = PreferenceStore(Path(temp_dir) / "state" / "preferences.json")
            store.set("key", "value")
            self.assertEqual(stat.S_IMODE(store.path.stat().st_mode), 0o600)
            self.assertEqual(stat.S_IMODE(store.path.parent.stat().st_mode), 0o700)


class ShortcutStoreTests(unittest.TestCase):
    def _store(self, base: Path) -> ShortcutStore:
        return ShortcutStore(base / "shortcuts.json")

    def test_save_assigns_increasing_ids(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = self._store(Path(temp_dir))
            first = store.save(ShortcutDraft(title="Docs", url="https://docs.python.org"))
            second = store.save(ShortcutDraft(title="PyPI", url="https://pypi.org"))
            self.assertEqual((first, second), (1, 2))
            rows = store.list()
            self.assertEqual([row.title for row in rows], ["Docs", "PyPI"])
            self.assertEqual([row.sort_order for row in rows], [0, 1])

    def test_save_with_id_updates_in_place(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = self._store(Path(temp_dir))
            shortcut_id = store.save(ShortcutDraft(title="Docs", url="https://docs.python.org"))
            store.save(ShortcutDraft(id=shortcut_id, title="Python Docs", url="https://docs.python.org/3/"))
            rows = store.list()
            self.assertEqual(len(rows), 1)
            self.assertEqual(rows[0].title, "Python Docs")
            self.assertEqual(rows[0].url, "https://docs.python.org/3/")

    def test_incomplete_draft_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = self._store(Path(temp_dir))
            with self.assertRaises(PersistenceError):
                store.save(ShortcutDraft(title="  ", url="https://example.com"))

    def test_reorder_and_delete(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = self._store(Path(temp_dir))
            for title in ("a", "b", "c"):
                store.save(ShortcutDraft(title=title, url=f"https://{title}.example"))
            store.reorder([2, 3, 1])
            self.assertEqual([row.id for row in store.list()], [2, 3, 1])
            store.delete(3)
            rows = store.list()
            self.assertEqual([row.id for row in rows], [2, 1])
            self.assertEqual([row.sort_order for row in rows], [0, 1])

    def test_reorder_keeps_unlisted_ids_at_the_end(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = self._store(Path(temp_dir))
            for title in ("a", "b", "c"):
                store.save(ShortcutDraft(title=title, url=f"https://{title}.example"))
            store.reorder([3, 99])
            self.assertEqual([row.id for row in store.list()], [3, 1, 2])

    def test_non_list_payload_is_a_format_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "shortcuts.json"
            path.write_text(json.dumps({"id": 1}), encoding="utf-8")
            with self.assertRaises(PersistenceFormatError):
                ShortcutStore(path).list()

    def test_invalid_rows_are_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "shortcuts.json"
            path.write_text(
                json.dumps([{"id": 1, "title": "ok", "url": "https://ok.example"}, {"title": "broken"}]),
                encoding="utf-8",
            )
            self.assertEqual([row.id for row in ShortcutStore(path).list()], [1])


if __name__ == "__main__":
    unittest.main()
