"""Modal screens for settings, shortcut editing and model picking."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, OptionList, Static, Switch

from .bridge.base import ShortcutDraft
from .managers.settings import SettingsSnapshot

if TYPE_CHECKING:
    from .managers.shortcuts import ShortcutManager


class SimplePickerScreen(ModalScreen[str | None]):
    """Modal picker for selecting from a list of strings."""

    CSS = """
    SimplePickerScreen {
        align: center middle;
    }

    #picker-dialog {
        width: 60;
        max-height: 24;
        padding: 1 2;
        border: round $panel;
        background: $surface;
    }

    #picker-title {
        padding-bottom: 1;
        text-style: bold;
    }

    #picker-help {
        padding-top: 1;
    }
    """

    def __init__(self, title: str, options: list[str]) -> None:
        super().__init__()
        self._title = title
        self._options = options

    def compose(self) -> ComposeResult:
        with Container(id="picker-dialog"):
            yield Static(self._title, id="picker-title")
            yield OptionList(*self._options, id="picker-options")
            yield Static("Enter/click to select | Esc to cancel", id="picker-help")

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        selected = event.option_index
        if 0 <= selected < len(self._options):
            self.dismiss(self._options[selected])

    def on_key(self, event: Any) -> None:  # noqa: ANN401
        if str(getattr(event, "key", "")).lower() == "escape":
            self.dismiss(None)


class SettingsScreen(ModalScreen[SettingsSnapshot | None]):
    """Local endpoint and answer-mode settings."""

    CSS = """
    SettingsScreen {
        align: center middle;
    }

    #settings-dialog {
        width: 64;
        height: auto;
        padding: 1 2;
        border: round $panel;
        background: $surface;
    }

    #settings-title {
        padding-bottom: 1;
        text-style: bold;
    }

    #settings-local-row {
        height: auto;
        margin-bottom: 1;
    }

    #settings-actions {
        height: 3;
        align: right middle;
    }
    """

    def __init__(self, snapshot: SettingsSnapshot) -> None:
        super().__init__()
        self._snapshot = snapshot

    def compose(self) -> ComposeResult:
        with Container(id="settings-dialog"):
            yield Static("Settings", id="settings-title")
            with Horizontal(id="settings-local-row"):
                yield Switch(value=self._snapshot.local_enabled, id="settings-local")
                yield Static(" Answer with local models")
            yield Input(
                value=self._snapshot.base_url,
                placeholder="http://localhost:11434",
                id="settings-base-url",
            )
            with Horizontal(id="settings-actions"):
                yield Button("Cancel", id="settings-cancel")
                yield Button("Save", id="settings-save", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#settings-base-url", Input).display = self._snapshot.local_enabled

    def on_switch_changed(self, event: Switch.Changed) -> None:
        self.query_one("#settings-base-url", Input).display = event.value

    def _result(self) -> SettingsSnapshot:
        return SettingsSnapshot(
            base_url=self.query_one("#settings-base-url", Input).value,
            local_enabled=self.query_one("#settings-local", Switch).value,
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if event.button.id == "settings-save":
            self.dismiss(self._result())
        else:
            self.dismiss(None)

    def on_key(self, event: Any) -> None:  # noqa: ANN401
        if str(getattr(event, "key", "")).lower() == "escape":
            self.dismiss(None)


class ShortcutEditorScreen(ModalScreen[None]):
    """Edit a shortcut; changes are saved automatically while typing."""

    CSS = """
    ShortcutEditorScreen {
        align: center middle;
    }

    #shortcut-dialog {
        width: 64;
        height: auto;
        padding: 1 2;
        border: round $panel;
        background: $surface;
    }

    #shortcut-dialog Input {
        margin-bottom: 1;
    }

    #shortcut-actions {
        height: 3;
        align: right middle;
    }
    """

    def __init__(self, manager: ShortcutManager, draft: ShortcutDraft | None = None) -> None:
        super().__init__()
        self._manager = manager
        self.draft = draft or ShortcutDraft()

    def compose(self) -> ComposeResult:
        with Container(id="shortcut-dialog"):
            yield Static("Shortcut", id="shortcut-title")
            yield Input(value=self.draft.title, placeholder="Title", id="shortcut-field-title")
            yield Input(value=self.draft.url, placeholder="https://", id="shortcut-field-url")
            yield Input(value=self.draft.color or "", placeholder="Color (#rrggbb)", id="shortcut-field-color")
            with Horizontal(id="shortcut-actions"):
                if self.draft.id is not None:
                    yield Button("Delete", id="shortcut-delete", variant="error")
                yield Button("Close", id="shortcut-close", variant="primary")

    def on_input_changed(self, event: Input.Changed) -> None:
        field = (event.input.id or "").removeprefix("shortcut-field-")
        if field not in {"title", "url", "color"}:
            return
        setattr(self.draft, field, event.value.strip() or (None if field == "color" else ""))
        self._manager.schedule_autosave(self.draft)

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if event.button.id == "shortcut-delete" and self.draft.id is not None:
            await self._manager.delete(self.draft.id)
        self.dismiss(None)

    def on_key(self, event: Any) -> None:  # noqa: ANN401
        if str(getattr(event, "key", "")).lower() == "escape":
            self.dismiss(None)
