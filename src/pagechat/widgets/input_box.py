"""Input row containing the message field, send button and directive menu."""

from __future__ import annotations

from textual import events
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.widgets import Button, Input, OptionList

from ..managers.suggestions import SuggestionState

MENU_KEYS = {"up", "down", "tab", "escape"}


class MessageInput(Input):
    """Message field that routes menu navigation keys to the suggestion state."""

    class SuggestionsChanged(Message):
        """Posted after a key changed the suggestion highlight or visibility."""

    def __init__(self, suggestions: SuggestionState, **kwargs) -> None:
        super().__init__(**kwargs)
        self.suggestions = suggestions

    async def _on_key(self, event: events.Key) -> None:
        if self.suggestions.visible and event.key in MENU_KEYS:
            event.stop()
            event.prevent_default()
            handled, value = self.suggestions.handle_key(event.key, self.value)
            if handled:
                self.value = value
                self.cursor_position = len(value)
                self.post_message(self.SuggestionsChanged())
            return
        await super()._on_key(event)


class InputBox(Vertical):
    """Input region with message field, send button and directive menu."""

    def __init__(self, suggestions: SuggestionState, **kwargs) -> None:
        super().__init__(**kwargs)
        self._suggestions = suggestions

    def compose(self):  # type: ignore[override]
        yield OptionList(id="slash_menu", classes="hidden")
        with Horizontal(id="input_row"):
            yield MessageInput(
                self._suggestions,
                placeholder="Ask about this page... (/ for directives)",
                id="message_input",
            )
            yield Button("Send", id="send_button", variant="success")

    def render_suggestions(self) -> None:
        """Mirror the suggestion state into the option list."""
        menu = self.query_one("#slash_menu", OptionList)
        menu.clear_options()
        if not self._suggestions.visible:
            menu.add_class("hidden")
            return
        menu.add_options(f"{item.command}  {item.hint}" for item in self._suggestions.items)
        menu.highlighted = self._suggestions.selected_index
        menu.remove_class("hidden")
