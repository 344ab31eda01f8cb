"""Editing aids for Kleio notation: group indentation and keyword hovers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

from kleio_status.diagnostics.extractor import split_lines

INDENT: Final[str] = "   "

# (pattern, depth): a group keyword at the start of a line is re-indented to
# ``depth`` levels; rules are applied in order to every line.
INDENT_RULES: Final[tuple[tuple[re.Pattern[str], int], ...]] = (
    (re.compile(r"^\s*(kleio)\$"), 0),
    (re.compile(r"^\s*(fonte)\$"), 1),
    (re.compile(r"^\s*(bap|b|cas|obito|o)\$"), 2),
    (re.compile(r"^\s*(n|noivo|noiva|test)\$"), 3),
    (re.compile(r"^\s*(pai|pn|mae|mn|pad1|pad|mad1|mad|pnoivo|pnoiva)\$"), 4),
    (re.compile(r"^\s*(ppad|pmad)\$"), 5),
)
ATTRIBUTE_MARKER: Final[str] = "ls$"
ATTRIBUTE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^\s*(ls)\$")
LEADING_SPACE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(\s+)")
WORD_PATTERN: Final[re.Pattern[str]] = re.compile(r"\w+")

HOVER_DETAILS: Final[dict[str, str]] = {
    "kleio": " ".join(
        (
            "kleio",
            "also=structure,translator,autorels,obs,prefix,translations;",
            "position=structure,translator,obs;",
        )
    ),
    "fonte": " ".join(
        (
            "fonte",
            "guaranteed=id;",
            "also=tipo,loc,localizacao,ref,data,ano,obs;",
        )
    ),
    "bap": " ".join(
        (
            "Baptismos",
            "position=id,dia,mes,ano,fol,local,celebrante;",
            "guaranteed=id,dia,mes,ano;",
            "repeat=celebrante,n,test,referido,referida",
        )
    ),
    "cas": " ".join(
        (
            "Casamentos",
            "name=cas,termo;",
            "source=pt-acto;",
            "guaranteed=id,dia,mes,ano,fol;",
            "position=id,dia,mes,ano,fol,loc,celebrante;",
            "also=celebrante,obs;",
            "repeat=celebrante,test,referida,referido,",
        )
    ),
}


def indent_line(line: str) -> str:
    """Re-indent a line that opens a known group; other lines come back unchanged."""
    for pattern, depth in INDENT_RULES:
        line = pattern.sub(INDENT * depth + r"\g<1>$", line)
    return line


def format_lines(lines: list[str]) -> list[str]:
    """Indent groups by nesting level.

    An ``ls$`` attribute line is placed one level below the last group line
    above it, as long as that line is itself indented.
    """
    formatted: list[str] = []
    previous: str | None = None
    for line in lines:
        text = indent_line(line)
        if ATTRIBUTE_MARKER in line and previous is not None:
            spaces = LEADING_SPACE_PATTERN.match(previous)
            if spaces is not None:
                text = ATTRIBUTE_PATTERN.sub(spaces.group(1) + INDENT + r"\g<1>$", line)
        else:
            previous = text
        formatted.append(text)
    return formatted


@dataclass(slots=True, frozen=True)
class FormatResult:
    text: str
    changed_lines: tuple[int, ...]

    def to_dict(self) -> dict[str, object]:
        return {"text": self.text, "changed_lines": list(self.changed_lines)}


def format_source(text: str) -> FormatResult:
    """Format a whole document, keeping its line endings.

    ``changed_lines`` holds the 1-based numbers of the lines that differ.
    """
    newline = "\r\n" if "\r\n" in text else "\n"
    original = split_lines(text)
    formatted = format_lines(original)
    changed = tuple(
        number
        for number, (before, after) in enumerate(zip(original, formatted), start=1)
        if before != after
    )
    return FormatResult(text=newline.join(formatted), changed_lines=changed)


def word_at(line_text: str, column: int) -> str | None:
    """Return the word touching ``column`` (0-based), if any."""
    for match in WORD_PATTERN.finditer(line_text):
        if match.start() <= column <= match.end():
            return match.group(0)
    return None


def hover_content(word: str | None) -> list[str]:
    """Return the hover lines for a keyword: the word in italics, then its details."""
    if word is None:
        return []
    details = HOVER_DETAILS.get(word)
    if details is None:
        return []
    return [f"*{word}*", details]


def hover_at(text: str, line: int, column: int) -> dict[str, object]:
    """Hover for the 1-based ``line`` and 0-based ``column`` of ``text``."""
    lines = split_lines(text)
    word = word_at(lines[line - 1], column) if 1 <= line <= len(lines) else None
    return {"word": word, "contents": hover_content(word)}
