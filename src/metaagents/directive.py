"""Directive parsing for markdown instruction documents.

A directive is a markdown file whose sections are quoted verbatim in the
generated reports. Parsing flattens every heading into an ordered list of
sections; lookups are case-insensitive and go through a slug.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict

_HEADING_RE = re.compile(r"^(#{1,6})(?:[ \t]+(.*?))?[ \t]*$")
_FENCE_RE = re.compile(r"^[ \t]{0,3}(`{3,}|~{3,})")
_CLOSING_HASHES_RE = re.compile(r"(?:^|[ \t]+)#+$")


class DirectiveSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    heading: str
    depth: int
    slug: str
    content: str


class Directive(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    sections: tuple[DirectiveSection, ...] = ()
    raw: str = ""

    def find_section(self, heading: str) -> DirectiveSection | None:
        return find_directive_section(self, heading)

    def headings(self) -> list[str]:
        return list_directive_headings(self)


@dataclass(frozen=True)
class ParsedHeading:
    text: str
    depth: int
    content: str


class MarkdownParser(ABC):
    """Extracts the ordered heading list of a markdown document."""

    @abstractmethod
    def headings(self, markdown: str) -> list[ParsedHeading]:
        raise NotImplementedError


class RegexMarkdownParser(MarkdownParser):
    """Line based ATX heading parser.

    Headings inside fenced code blocks are skipped. The content of a heading
    runs until the next heading of equal or lesser depth.
    """

    def headings(self, markdown: str) -> list[ParsedHeading]:
        lines = markdown.replace("\r\n", "\n").split("\n")
        positions = _scan_headings(lines)
        parsed: list[ParsedHeading] = []
        for index, (line_no, depth, text) in enumerate(positions):
            end = len(lines)
            for next_line, next_depth, _ in positions[index + 1 :]:
                if next_depth <= depth:
                    end = next_line
                    break
            content = "\n".join(lines[line_no + 1 : end]).strip()
            parsed.append(ParsedHeading(text=text, depth=depth, content=content))
        return parsed


def _scan_headings(lines: list[str]) -> list[tuple[int, int, str]]:
    found: list[tuple[int, int, str]] = []
    fence: str | None = None
    for line_no, line in enumerate(lines):
        fence_match = _FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker[0] * len(marker)
            elif marker[0] == fence[0] and len(marker) >= len(fence):
                fence = None
            continue
        if fence is not None:
            continue
        match = _HEADING_RE.match(line)
        if not match:
            continue
        text = _CLOSING_HASHES_RE.sub("", (match.group(2) or "").strip()).strip()
        found.append((line_no, len(match.group(1)), text))
    return found


def slugify_heading(value: str) -> str:
    slug = value.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def parse_directive(
    markdown: str,
    parser: MarkdownParser | None = None,
    level: int | None = None,
) -> Directive:
    """Parse a markdown directive into its title and sections.

    Args:
        markdown: Directive document
        parser: Heading extraction strategy (defaults to RegexMarkdownParser)
        level: Keep only headings of this depth when given

    Returns:
        Directive with sections in document order. Documents without
        headings yield an empty section list.
    """
    parser = parser or RegexMarkdownParser()
    headings = parser.headings(markdown)
    title = next((heading.text for heading in headings if heading.depth == 1 and heading.text), None)
    sections = tuple(
        DirectiveSection(
            heading=heading.text or "Untitled",
            depth=heading.depth,
            slug=slugify_heading(heading.text or "untitled"),
            content=heading.content,
        )
        for heading in headings
        if level is None or heading.depth == level
    )
    return Directive(title=title or "Directive", sections=sections, raw=markdown)


def find_directive_section(directive: Directive, heading: str) -> DirectiveSection | None:
    """Return the first section matching ``heading`` by slug or text, if any."""
    normalized = slugify_heading(heading)
    if not normalized:
        return None
    wanted = heading.strip().lower()
    for section in directive.sections:
        if section.slug == normalized or section.heading.lower() == wanted:
            return section
    # Loose match: "Output" finds "Output & Handoff".
    for section in directive.sections:
        if normalized in section.slug:
            return section
    return None


def list_directive_headings(directive: Directive) -> list[str]:
    return [section.heading for section in directive.sections]
