"""Widget exports for the PageChat UI."""

from .conversation import ConversationView
from .input_box import InputBox, MessageInput
from .message import MessageBubble
from .shortcut_grid import ShortcutGrid
from .status_bar import StatusBar
from .tab_bar import TabBar

__all__ = [
    "ConversationView",
    "InputBox",
    "MessageBubble",
    "MessageInput",
    "ShortcutGrid",
    "StatusBar",
    "TabBar",
]
