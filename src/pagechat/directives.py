"""Pure parsing helpers for slash directives that restyle the outgoing prompt."""

from __future__ import annotations

from dataclasses import dataclass
import re

SIGIL = "/"

_DIRECTIVE_RE = re.compile(r"^\s*/(\w+)\b(.*)$", re.DOTALL)


@dataclass(frozen=True)
class Directive:
    """One entry of the directive table."""

    keyword: str
    hint: str
    instruction: str
    default_question: str

    @property
    def command(self) -> str:
        return f"{SIGIL}{self.keyword}"


DIRECTIVES: tuple[Directive, ...] = (
    Directive(
        "ozetle",
        "Summarize briefly",
        "Format: give a short and concise summary.",
        "Can you summarize this page?",
    ),
    Directive(
        "acikla",
        "Explain in detail",
        "Format: explain in a detailed and descriptive way.",
        "Can you explain this content in detail?",
    ),
    Directive(
        "madde",
        "Answer as a bulleted list",
        "Format: answer as a bulleted list.",
        "Can you explain this content as a bulleted list?",
    ),
    Directive(
        "kaynakekle",
        "Cite sources",
        "Format: add sources and links where available.",
        "Can you add sources and links related to this content?",
    ),
    Directive(
        "kisalt",
        "Write it shorter",
        "Format: write it shorter.",
        "Can you make this answer shorter?",
    ),
    Directive(
        "uzat",
        "Write it longer",
        "Format: write it in more detail.",
        "Can you make this answer more detailed?",
    ),
)

_BY_KEYWORD = {directive.keyword: directive for directive in DIRECTIVES}


@dataclass(frozen=True)
class ParsedDirective:
    """Result of splitting a message into its content and style instruction."""

    clean: str
    directive: str | None
    keyword: str | None = None


def lookup(keyword: str) -> Directive | None:
    return _BY_KEYWORD.get(keyword.lower())


def match_prefix(prefix: str) -> list[Directive]:
    """Return table entries whose keyword starts with ``prefix`` (case-insensitive)."""
    query = prefix.lower()
    return [d for d in DIRECTIVES if d.keyword.lower().startswith(query)]


def parse_directive(text: str) -> ParsedDirective:
    """Split ``text`` into clean content and an optional directive instruction.

    Unknown keywords leave the message untouched. A recognised directive with
    no trailing content gets the keyword's default question instead.
    """
    match = _DIRECTIVE_RE.match(text)
    if match is None:
        return ParsedDirective(clean=text, directive=None)
    directive = lookup(match.group(1))
    if directive is None:
        return ParsedDirective(clean=text, directive=None)
    rest = (match.group(2) or "").strip()
    return ParsedDirective(
        clean=rest or directive.default_question,
        directive=directive.instruction,
        keyword=directive.keyword,
    )


def build_question(clean: str, directive: str | None) -> str:
    """Join the directive instruction and the content with a blank line."""
    if not directive:
        return clean
    if not clean or not clean.strip():
        return directive
    return f"{directive}\n\n{clean}"
