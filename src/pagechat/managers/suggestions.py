"""Directive suggestion menu state.

Drives the popup that lists matching directives while the message input
starts with the sigil, independent of any widget toolkit.
"""

from __future__ import annotations

from dataclasses import dataclass
import re

from ..directives import SIGIL, Directive, match_prefix

_WHITESPACE_RE = re.compile(r"\s")
_LEADING_RE = re.compile(r"^\s*")


@dataclass(frozen=True)
class Suggestion:
    command: str
    hint: str

    @classmethod
    def from_directive(cls, directive: Directive) -> Suggestion:
        return cls(command=directive.command, hint=directive.hint)


class SuggestionState:
    """Visible flag, filtered items and the highlighted index.

    Invariant: ``visible`` holds exactly when ``items`` is non-empty, and while
    visible ``selected_index`` is a valid index into ``items`` (``-1`` when
    hidden).
    """

    def __init__(self) -> None:
        self.visible = False
        self.items: tuple[Suggestion, ...] = ()
        self.selected_index = -1

    def update(self, value: str) -> None:
        """Recompute suggestions for the current input value."""
        trimmed = value.lstrip()
        if not trimmed.startswith(SIGIL):
            self.hide()
            return
        first_token = _WHITESPACE_RE.split(trimmed, maxsplit=1)[0]
        matches = match_prefix(first_token[len(SIGIL) :])
        if not matches:
            self.hide()
            return
        self.items = tuple(Suggestion.from_directive(d) for d in matches)
        self.visible = True
        self.selected_index = 0

    def hide(self) -> None:
        self.visible = False
        self.items = ()
        self.selected_index = -1

    def move(self, delta: int) -> None:
        """Move the highlight by ``delta``, wrapping in both directions."""
        if not self.visible or not self.items:
            return
        self.selected_index = (self.selected_index + delta) % len(self.items)

    @property
    def selected(self) -> Suggestion | None:
        if not self.visible or not self.items:
            return None
        index = max(0, min(self.selected_index, len(self.items) - 1))
        return self.items[index]

    def accept(self, value: str, command: str | None = None) -> str:
        """Return ``value`` with the typed token replaced by the chosen command.

        Leading whitespace and any content after the first token are kept; the
        menu is hidden afterwards.
        """
        if command is None:
            chosen = self.selected
            if chosen is None:
                return value
            command = chosen.command
        leading = _LEADING_RE.match(value).group(0)
        trimmed = value[len(leading) :]
        if trimmed.startswith(SIGIL):
            rest = " ".join(_WHITESPACE_RE.split(trimmed)[1:])
            result = leading + command + (f" {rest}" if rest else " ")
        else:
            result = f"{leading}{command} {trimmed}"
        self.hide()
        return result

    def handle_key(self, key: str, value: str) -> tuple[bool, str]:
        """Process a navigation key while the menu is open.

        Args:
            key: Key name as reported by the front-end (``down``, ``tab``,
                ``up``, ``enter``, ``escape``)
            value: Current input value

        Returns:
            ``(handled, new_value)``; an unhandled key leaves the value as-is
            and must be processed normally (for ``enter`` that means submit).
        """
        if not self.visible:
            return False, value
        if key in ("down", "tab"):
            self.move(1)
            return True, value
        if key == "up":
            self.move(-1)
            return True, value
        if key == "enter":
            return True, self.accept(value)
        if key == "escape":
            self.hide()
            return True, value
        return False, value
