"""Tab strip listing the browsing sessions."""

from __future__ import annotations

from textual.containers import Horizontal
from textual.message import Message
from textual.widgets import Button

from ..managers.sessions import Session


class TabBar(Horizontal):
    """One button per session plus a new-tab button."""

    DEFAULT_CSS = """
    TabBar {
        height: 3;
    }
    TabBar Button {
        min-width: 8;
        max-width: 28;
        margin-right: 1;
    }
    TabBar Button.-active-tab {
        text-style: bold reverse;
    }
    """

    class TabSelected(Message):
        def __init__(self, tab_id: str) -> None:
            super().__init__()
            self.tab_id = tab_id

    class NewTabRequested(Message):
        """Posted when the new-tab button is pressed."""

    async def set_sessions(self, sessions: list[Session], active_id: str | None) -> None:
        await self.remove_children()
        buttons = []
        for session in sessions:
            label = session.title if len(session.title) <= 24 else session.title[:23] + "…"
            button = Button(label, id=f"tabbtn-{session.id}")
            button.tooltip = session.url or session.title
            if session.id == active_id:
                button.add_class("-active-tab")
            buttons.append(button)
        buttons.append(Button("+", id="tabbtn-new", variant="success"))
        await self.mount_all(buttons)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        button_id = event.button.id or ""
        if button_id == "tabbtn-new":
            self.post_message(self.NewTabRequested())
        elif button_id.startswith("tabbtn-"):
            self.post_message(self.TabSelected(button_id.removeprefix("tabbtn-")))
