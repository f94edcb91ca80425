"""Main Textual application: tabs, address bar, shortcuts and page chat."""

from __future__ import annotations

import logging
from typing import Any

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.css.query import NoMatches
from textual.widgets import Button, Footer, Header, Input, OptionList, Select, Static

from .bridge.base import Bridge, ShortcutDraft
from .config import load_config
from .events import EventBus
from .geometry import Rect
from .logging_utils import configure_logging
from .managers.settings import SettingsSnapshot
from .persistence import PreferenceStore
from .screens import SettingsScreen, ShortcutEditorScreen, SimplePickerScreen
from .shell import Shell
from .state import AnswerMode
from .transcript import ChatTurn, Transcript, markdown_formatter
from .widgets import (
    ConversationView,
    InputBox,
    MessageInput,
    ShortcutGrid,
    StatusBar,
    TabBar,
)

LOGGER = logging.getLogger(__name__)


class PageChatApp(App):
    """Terminal shell that chats about the page open in the active tab."""

    CSS = """
    Screen {
        layout: vertical;
        background: $background;
    }

    #app-root {
        layout: vertical;
        width: 100%;
        height: 1fr;
    }

    #address_row {
        height: 3;
    }

    #address_row Button {
        min-width: 5;
    }

    #address_input {
        width: 1fr;
    }

    #main {
        height: 1fr;
    }

    #page_area {
        width: 3fr;
        border: round $panel;
    }

    #page_view {
        padding: 1 2;
        color: $text-muted;
    }

    #chat_panel {
        width: 2fr;
        border-left: solid $panel;
    }

    #model_row {
        height: 3;
    }

    #model_select {
        width: 1fr;
    }

    #model_select.hidden {
        display: none;
    }

    #conversation {
        height: 1fr;
        padding: 0 1;
    }

    InputBox {
        height: auto;
        padding: 0 1 1 1;
        border-top: solid $panel;
    }

    #input_row {
        height: auto;
    }

    #message_input {
        width: 1fr;
    }

    #send_button {
        margin-left: 1;
        min-width: 8;
    }

    #slash_menu {
        max-height: 8;
        margin-bottom: 1;
    }

    #slash_menu.hidden {
        display: none;
    }

    #status_bar {
        height: auto;
        padding: 0 1;
        border-top: solid $panel;
        background: $surface;
    }

    MessageBubble {
        margin: 1 0;
        padding: 0 1;
        border: round $panel;
    }

    .message-user {
        background: $primary 20%;
    }

    .message-system {
        border: none;
        color: $text-muted;
        text-style: italic;
    }
    """

    BINDINGS = [
        Binding("ctrl+t", "new_tab", "New Tab"),
        Binding("ctrl+w", "close_tab", "Close Tab"),
        Binding("ctrl+shift+left", "move_tab(-1)", "Move Tab Left", show=False),
        Binding("ctrl+shift+right", "move_tab(1)", "Move Tab Right", show=False),
        Binding("ctrl+l", "focus_address", "Address"),
        Binding("alt+left", "back", "Back", show=False),
        Binding("alt+right", "forward", "Forward", show=False),
        Binding("ctrl+r", "reload", "Reload", show=False),
        Binding("ctrl+g", "go_home", "Home"),
        Binding("ctrl+o", "toggle_mode", "Mode"),
        Binding("ctrl+k", "clear_chat", "Clear Chat"),
        Binding("ctrl+s", "open_settings", "Settings"),
        Binding("ctrl+n", "add_shortcut", "Add Shortcut", show=False),
        Binding("f2", "pick_remote_model", "Remote Model", show=False),
        Binding("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        bridge: Bridge | None = None,
        bus: EventBus | None = None,
        start_url: str | None = None,
        pointer_drag_supported: bool = False,
    ) -> None:
        super().__init__()
        self.config = config or load_config()
        configure_logging(self.config["logging"])
        if start_url:
            self.config["app"]["start_url"] = start_url
        self.bus = bus or EventBus()
        if bridge is None:
            from .bridge.inprocess import InProcessBridge

            bridge = InProcessBridge(self.config, self.bus)
        self.shell = Shell(
            self.config,
            bridge,
            self.bus,
            PreferenceStore(self.config["persistence"]["preferences_path"]),
            geometry_provider=self._page_geometry,
            transcript=Transcript(formatter=markdown_formatter),
        )
        self.pointer_drag_supported = pointer_drag_supported
        self.title = str(self.config["app"]["title"])

    def compose(self) -> ComposeResult:
        context = self.shell.context
        yield Header()
        with Container(id="app-root"):
            yield TabBar(id="tab_bar")
            with Horizontal(id="address_row"):
                yield Button("◀", id="back_button")
                yield Button("▶", id="forward_button")
                yield Button("⟳", id="reload_button")
                yield Button("⌂", id="home_button")
                yield Input(placeholder="Search or enter address", id="address_input")
                yield Button("⚙", id="settings_button")
            with Horizontal(id="main"):
                with Container(id="page_area"):
                    yield ShortcutGrid(
                        self.shell.shortcuts,
                        pointer_drag_supported=self.pointer_drag_supported,
                        id="shortcut_grid",
                    )
                    yield Static("", id="page_view")
                with Vertical(id="chat_panel"):
                    with Horizontal(id="model_row"):
                        yield Button("online", id="mode_button")
                        yield Select[str]([], allow_blank=True, id="model_select", classes="hidden")
                    yield ConversationView(
                        context.transcript,
                        show_timestamps=bool(self.config["ui"]["show_timestamps"]),
                        id="conversation",
                    )
                    yield InputBox(self.shell.suggestions)
            yield StatusBar(id="status_bar")
        yield Footer()

    async def on_mount(self) -> None:
        self._w_address = self.query_one("#address_input", Input)
        self._w_input = self.query_one("#message_input", MessageInput)
        self._w_send = self.query_one("#send_button", Button)
        self._w_mode = self.query_one("#mode_button", Button)
        self._w_select = self.query_one("#model_select", Select)
        self._w_grid = self.query_one("#shortcut_grid", ShortcutGrid)
        self._w_page = self.query_one("#page_view", Static)
        self._w_status = self.query_one("#status_bar", StatusBar)
        self._w_tabs = self.query_one("#tab_bar", TabBar)
        self._w_input_box = self.query_one(InputBox)
        self._w_conversation = self.query_one(ConversationView)

        context = self.shell.context
        context.on_change(self._on_context_change)
        context.transcript.on_turn_changed(self._on_turn_changed)
        context.transcript.on_cleared(self._on_transcript_cleared)
        self.shell.sessions.on_change(self._on_sessions_changed)

        self._w_page.display = False
        self._w_status.set_status(context)
        self.shell.tasks.spawn(self._start_shell(), name="shell_start")

    async def _start_shell(self) -> None:
        await self.shell.start()
        self._w_grid.refresh(layout=True)
        await self._refresh_tabs()
        self._w_input.focus()

    def _page_geometry(self) -> Rect | None:
        try:
            region = self.query_one("#page_area").content_region
        except NoMatches:
            return None
        return Rect(region.x, region.y, region.width, region.height)

    # Shell notifications.

    def _on_context_change(self, aspect: str) -> None:
        context = self.shell.context
        if aspect == "address":
            self._w_address.value = context.address
        elif aspect == "home":
            self._w_grid.display = context.home_visible
            self._w_page.display = not context.home_visible
            self._update_page_view()
        elif aspect == "input":
            self._w_input.disabled = not context.input_enabled
            self._w_send.disabled = not context.input_enabled
        elif aspect in ("mode", "model"):
            self._refresh_model_selector()
        elif aspect == "settings":
            self.shell.tasks.spawn(self.action_open_settings())
        self._w_status.set_status(context)

    def _on_turn_changed(self, turn: ChatTurn) -> None:
        self.shell.tasks.spawn(self._w_conversation.show_turn(turn))

    def _on_transcript_cleared(self) -> None:
        self.shell.tasks.spawn(self._w_conversation.clear())

    def _on_sessions_changed(self) -> None:
        self.shell.tasks.debounce("tab_bar", 0.0, self._refresh_tabs)
        self._update_page_view()

    async def _refresh_tabs(self) -> None:
        sessions = self.shell.sessions
        await self._w_tabs.set_sessions(sessions.sessions, sessions.active_id)

    def _update_page_view(self) -> None:
        session = self.shell.sessions.active
        if session is None or not session.url:
            self._w_page.update("")
            return
        self._w_page.update(f"{session.title}\n{session.url}")

    def _refresh_model_selector(self) -> None:
        context = self.shell.context
        models = self.shell.models
        self._w_mode.label = "local" if context.mode == AnswerMode.LOCAL else "online"
        self._w_select.set_class(not models.visible, "hidden")
        self._w_select.set_options((label, value) for value, label in models.options)
        values = {value for value, _ in models.options}
        if context.current_model in values:
            self._w_select.value = context.current_model
        else:
            self._w_select.clear()

    # Widget events.

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "address_input":
            event.stop()
            await self.shell.open_address(event.value)
        elif event.input.id == "message_input":
            event.stop()
            suggestions = self.shell.suggestions
            if suggestions.visible:
                _, value = suggestions.handle_key("enter", event.value)
                self._set_message_value(value)
                return
            await self._send(event.value)

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id != "message_input":
            return
        self.shell.suggestions.update(event.value)
        self._w_input_box.render_suggestions()

    def on_message_input_suggestions_changed(self, event: MessageInput.SuggestionsChanged) -> None:
        self._w_input_box.render_suggestions()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        if event.option_list.id != "slash_menu":
            return
        event.stop()
        suggestions = self.shell.suggestions
        if not 0 <= event.option_index < len(suggestions.items):
            return
        command = suggestions.items[event.option_index].command
        self._set_message_value(suggestions.accept(self._w_input.value, command=command))

    def _set_message_value(self, value: str) -> None:
        self._w_input.value = value
        self._w_input.cursor_position = len(value)
        self._w_input_box.render_suggestions()
        self._w_input.focus()

    async def _send(self, text: str) -> None:
        if await self.shell.submit(text):
            self._w_input.value = ""
        self._w_input_box.render_suggestions()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id
        if button_id == "send_button":
            await self._send(self._w_input.value)
        elif button_id == "back_button":
            await self.action_back()
        elif button_id == "forward_button":
            await self.action_forward()
        elif button_id == "reload_button":
            await self.action_reload()
        elif button_id == "home_button":
            await self.action_go_home()
        elif button_id == "settings_button":
            await self.action_open_settings()
        elif button_id == "mode_button":
            await self.action_toggle_mode()
        else:
            return
        event.stop()

    def on_select_changed(self, event: Select.Changed) -> None:
        if event.select.id != "model_select" or event.value is Select.BLANK:
            return
        if event.value != self.shell.context.current_model:
            self.shell.models.select(str(event.value))

    async def on_tab_bar_tab_selected(self, event: TabBar.TabSelected) -> None:
        await self.shell.sessions.switch_to(event.tab_id)

    async def on_tab_bar_new_tab_requested(self, event: TabBar.NewTabRequested) -> None:
        await self.action_new_tab()

    async def on_shortcut_grid_shortcut_opened(self, event: ShortcutGrid.ShortcutOpened) -> None:
        await self.shell.shortcuts.open(event.shortcut_id)

    def on_shortcut_grid_shortcut_edit_requested(
        self, event: ShortcutGrid.ShortcutEditRequested
    ) -> None:
        shortcut = (
            self.shell.shortcuts.get(event.shortcut_id) if event.shortcut_id is not None else None
        )
        draft = ShortcutDraft.model_validate(shortcut.model_dump()) if shortcut else ShortcutDraft()
        self.push_screen(ShortcutEditorScreen(self.shell.shortcuts, draft), callback=self._after_edit)

    async def on_status_bar_mode_toggle_requested(self, event: StatusBar.ModeToggleRequested) -> None:
        await self.action_toggle_mode()

    def on_resize(self, event: events.Resize) -> None:
        self.shell.sessions.request_layout_refresh()

    async def on_unmount(self) -> None:
        await self.shell.shutdown()

    # Actions.

    async def action_new_tab(self) -> None:
        await self.shell.sessions.create()

    async def action_close_tab(self) -> None:
        active = self.shell.sessions.active_id
        if active is not None:
            await self.shell.sessions.close(active)

    async def action_move_tab(self, offset: int) -> None:
        active = self.shell.sessions.active_id
        if active is not None:
            await self.shell.sessions.move(active, offset)

    def action_focus_address(self) -> None:
        self._w_address.focus()

    async def action_back(self) -> None:
        await self.shell.sessions.back()

    async def action_forward(self) -> None:
        await self.shell.sessions.forward()

    async def action_reload(self) -> None:
        await self.shell.sessions.reload()

    async def action_go_home(self) -> None:
        await self.shell.sessions.go_home()

    async def action_toggle_mode(self) -> None:
        current = self.shell.context.mode
        await self.shell.set_mode(AnswerMode.REMOTE if current == AnswerMode.LOCAL else AnswerMode.LOCAL)

    def action_clear_chat(self) -> None:
        self.shell.stream.clear()

    async def action_open_settings(self) -> None:
        snapshot = await self.shell.settings.load()
        self.push_screen(SettingsScreen(snapshot), callback=self._after_settings)

    async def _after_settings(self, result: SettingsSnapshot | None) -> None:
        if result is not None:
            await self.shell.settings.save(result.base_url, result.local_enabled)

    def action_add_shortcut(self) -> None:
        self.push_screen(ShortcutEditorScreen(self.shell.shortcuts), callback=self._after_edit)

    async def _after_edit(self, _: None) -> None:
        await self.shell.shortcuts.load()
        self._w_grid.refresh(layout=True)

    async def action_pick_remote_model(self) -> None:
        models = await self.shell.models.load_remote_models()
        if not models:
            self.shell.context.set_chat_status("No remote models available", "error")
            return
        names = [model.name for model in models]
        self.push_screen(SimplePickerScreen("Remote Models", names), callback=self._after_model_pick)

    def _after_model_pick(self, name: str | None) -> None:
        if name:
            self.shell.models.select(f"openrouter:{name}")
