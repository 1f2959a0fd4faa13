"""Section-level TOML merging that keeps user-authored text verbatim.

Codex reads a single ``config.toml``.  We build it from three layers:
  - a built-in default document,
  - operator overrides (base config, additional MCP servers),
  - a fixed platform fragment that must always be present.

Merging happens on *sections*, not keys: an override section replaces the
default section of the same name wholesale, and every section keeps its
original text (comments and formatting included).  Inputs and the merged
result are validated with ``tomllib``; nothing is ever re-serialized.

Key entities:
  - ConfigSection: one table (or array-of-tables group) with its raw lines.
  - ConfigDocument: ordered sections, the first one being the top level.
  - parse_document(): text -> ConfigDocument, raises MalformedConfig.
  - merge(): default + override + fixed_append -> ConfigDocument.
"""

from __future__ import annotations

import json
import logging
import re
import tomllib
from dataclasses import dataclass, field

from ..errors import MalformedConfig

logger = logging.getLogger(__name__)

TOP_LEVEL = ""

_HEADER_RE = re.compile(r"^\s*(\[\[?)\s*(.+?)\s*(\]\]?)\s*(#.*)?$")
_BARE_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def _key_path(raw: str) -> list[str] | None:
    """Split a dotted TOML key into its parts, unquoting quoted parts."""
    try:
        node = tomllib.loads(f"{raw} = 0")
    except tomllib.TOMLDecodeError:
        return None
    parts: list[str] = []
    while isinstance(node, dict) and len(node) == 1:
        key, node = next(iter(node.items()))
        parts.append(key)
    return parts


def normalize_name(raw: str) -> str:
    """Canonical section name for a header's dotted key.

    Quoting and whitespace do not matter: ``[ a . "b" ]`` and ``[a.b]`` both
    name ``a.b``.  Parts that are not valid bare keys stay quoted.
    """
    parts = _key_path(raw)
    if not parts:
        return re.sub(r"\s*\.\s*", ".", raw.strip())
    return ".".join(
        p if _BARE_KEY_RE.match(p) else json.dumps(p, ensure_ascii=False)
        for p in parts
    )


@dataclass
class ConfigSection:
    """A top-level or named section with its raw text lines.

    For array tables (``[[name]]``) every element of the array, plus any
    sub-tables declared under an element, lives in the same section.
    """

    name: str
    lines: list[str] = field(default_factory=list)
    is_array: bool = False

    @property
    def is_present(self) -> bool:
        """False for a top-level section holding only blanks and comments."""
        if self.name != TOP_LEVEL:
            return True
        return any(
            line.strip() and not line.lstrip().startswith("#") for line in self.lines
        )

    def render(self) -> str:
        return "\n".join(self.lines).strip("\n")

    def is_within(self, name: str) -> bool:
        """True if this section is ``name`` itself or one of its sub-tables."""
        return self.name == name or self.name.startswith(name + ".")


@dataclass
class ConfigDocument:
    """Ordered sections; ``sections[0]`` is always the top-level section."""

    sections: list[ConfigSection] = field(
        default_factory=lambda: [ConfigSection(TOP_LEVEL)]
    )

    def names(self) -> list[str]:
        return [s.name for s in self.sections if s.is_present]

    def get(self, name: str) -> ConfigSection | None:
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def copy(self) -> ConfigDocument:
        return ConfigDocument(
            [ConfigSection(s.name, list(s.lines), s.is_array) for s in self.sections]
        )

    def put(self, section: ConfigSection) -> bool:
        """Replace the section of the same name in place, or append it.

        Returns True if an existing section was replaced.
        """
        for i, existing in enumerate(self.sections):
            if existing.name == section.name:
                self.sections[i] = section
                return True
        self.sections.append(section)
        return False

    def replace_tree(self, section: ConfigSection, keep: set[str]) -> list[str]:
        """Replace ``section`` in place and drop its sub-tables not in ``keep``.

        Returns the names of the dropped sub-tables.
        """
        dropped: list[str] = []
        if section.name != TOP_LEVEL:
            dropped = [
                s.name
                for s in self.sections
                if s.name != section.name
                and s.is_within(section.name)
                and s.name not in keep
            ]
            self.sections = [s for s in self.sections if s.name not in dropped]
        self.put(section)
        return dropped

    def remove_tree(self, name: str) -> list[str]:
        """Drop ``name`` and its sub-tables; return the removed names."""
        removed = [s.name for s in self.sections if s.name and s.is_within(name)]
        self.sections = [
            s for s in self.sections if not (s.name and s.is_within(name))
        ]
        return removed

    def render(self) -> str:
        parts = [s.render() for s in self.sections if s.is_present]
        parts = [p for p in parts if p]
        if not parts:
            return ""
        return "\n\n".join(parts) + "\n"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _advance(line: str, ml: str | None, depth: int) -> tuple[str | None, int]:
    """Track multi-line string and bracket state across one value line."""
    i = 0
    n = len(line)
    while i < n:
        if ml:
            end = line.find(ml, i)
            if end < 0:
                return ml, depth
            i = end + 3
            ml = None
            continue
        ch = line[i]
        if ch == "#":
            break
        if line.startswith('"""', i) or line.startswith("'''", i):
            ml = line[i : i + 3]
            i += 3
            continue
        if ch == '"':
            i += 1
            while i < n and line[i] != '"':
                if line[i] == "\\":
                    i += 1
                i += 1
            i += 1
            continue
        if ch == "'":
            end = line.find("'", i + 1)
            i = n if end < 0 else end + 1
            continue
        if ch in "[{":
            depth += 1
        elif ch in "]}":
            depth = max(0, depth - 1)
        i += 1
    return ml, depth


def _match_header(line: str) -> tuple[str, bool] | None:
    m = _HEADER_RE.match(line)
    if not m:
        return None
    opening, raw_name, closing = m.group(1), m.group(2), m.group(3)
    if len(opening) != len(closing):
        return None
    return normalize_name(raw_name), len(opening) == 2


def parse_document(text: str, source: str = "config") -> ConfigDocument:
    """Split TOML text into sections after validating it with tomllib.

    Raises:
        MalformedConfig: If ``text`` is not valid TOML.
    """
    try:
        tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise MalformedConfig(source, str(e)) from e

    doc = ConfigDocument()
    current = doc.sections[0]
    ml: str | None = None
    depth = 0

    for line in text.splitlines():
        header = _match_header(line) if ml is None and depth == 0 else None
        if header is None:
            current.lines.append(line)
            ml, depth = _advance(line, ml, depth)
            continue

        name, is_array = header
        if current.is_array and name.startswith(current.name + "."):
            # Sub-table of the current array element stays with that element
            current.lines.append(line)
            continue
        existing = doc.get(name) if is_array else None
        if existing is not None and existing.is_array:
            existing.lines.append(line)
            current = existing
            continue
        current = ConfigSection(name, [line], is_array)
        doc.sections.append(current)

    return doc


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def merge(
    default: ConfigDocument,
    override: ConfigDocument | None = None,
    fixed_append: ConfigDocument | None = None,
) -> ConfigDocument:
    """Merge documents at section granularity.

    - Every present section of ``override`` replaces the same-named section
      of ``default`` in place, or is appended if ``default`` lacks it.  The
      replaced section's sub-tables go with it unless ``override`` declares
      them too.
    - Every section of ``fixed_append`` is appended at the end.  A section of
      the same name (or one of its sub-tables) already in the result is
      removed first: the platform section always wins and appears once.

    Raises:
        MalformedConfig: If the merged document is not valid TOML.
    """
    result = default.copy()

    if override is not None:
        own = set(override.names())
        for section in override.sections:
            if not section.is_present:
                continue
            replaced = result.get(section.name) is not None
            stale = result.replace_tree(section, keep=own)
            if replaced:
                logger.debug("Section [%s] replaced by override", section.name or "<top>")
            if stale:
                logger.debug(
                    "Dropped sub-tables of replaced [%s]: %s", section.name, ", ".join(stale)
                )

    if fixed_append is not None:
        for section in fixed_append.sections:
            if not section.is_present:
                continue
            if section.name == TOP_LEVEL:
                result.put(section)
                continue
            displaced = result.remove_tree(section.name)
            if displaced:
                logger.warning(
                    "Reserved section [%s] is managed by the platform; "
                    "dropping user-defined %s",
                    section.name,
                    ", ".join(f"[{n}]" for n in displaced),
                )
            result.sections.append(section)

    try:
        tomllib.loads(result.render())
    except tomllib.TOMLDecodeError as e:
        raise MalformedConfig("merged configuration", str(e)) from e
    return result
