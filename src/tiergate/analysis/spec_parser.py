"""
Spec Parser
===========
Parses a component's *.spec.md into a SpecRecord.

Layout understood:

    ---
    tier: 2                 # optional YAML front matter (tier, name, component)
    ---
    # UserCard (Tier 2)     # H1: component name, optional "(Tier N)"

    ## Tier
    Tier 2

    ## Props
    ```ts
    interface UserCardProps {
      name: string;
      size?: 'sm' | 'md'; // default: 'md'
    }
    ```

    ## States
    - loading: skeleton while the user loads

Missing or malformed sections never abort parsing. The parser records what
it found; the Conformance Engine decides what is missing.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from tiergate.analysis.models import (
    CallbackInfo,
    PropInfo,
    SpecRecord,
    StateInfo,
    normalize_state_name,
)
from tiergate.analysis.tier_table import MAX_TIER, MIN_TIER
from tiergate.analysis.typescript import (
    find_type_blocks,
    function_params,
    normalize_type,
    parse_type_members,
)

logger = logging.getLogger(__name__)

# Heading spellings seen in the wild -> canonical section key
SECTION_ALIASES = {
    "tier-classification": "tier",
    "component-tier": "tier",
    "properties": "props",
    "props-interface": "props",
    "prop-types": "props",
    "api": "props",
    "state": "states",
    "visual-states": "states",
    "ui-states": "states",
    "events": "callbacks",
    "event-handlers": "callbacks",
    "data-binding": "data-bindings",
    "bindings": "data-bindings",
    "data-source": "data-sources",
    "data-fetching": "data-sources",
    "server-action": "server-actions",
    "actions": "server-actions",
    "form-validation": "form-schema",
    "validation-schema": "form-schema",
    "schema": "form-schema",
    "routing": "route",
    "routes": "route",
    "a11y": "accessibility",
}

_FRONT_MATTER = re.compile(r"\A---[ \t]*\n(.*?)\n---[ \t]*(?:\n|\Z)", re.DOTALL)
_HEADING = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_FENCE = re.compile(r"^\s*(```|~~~)\s*([\w+-]*)")
_H1_TIER = re.compile(r"\(\s*tier\s*(\d+)\s*\)|[-—–:|]\s*tier\s*(\d+)\s*$", re.IGNORECASE)
_TIER_VALUE = re.compile(r"^\s*(?:tier\s*)?[:#]?\s*(-?\d+)\b", re.IGNORECASE)
_TIER_ANYWHERE = re.compile(r"\btier\s*[:#]?\s*(-?\d+)\b", re.IGNORECASE)
_TITLE_SUFFIX = re.compile(r"\s+(?:component|spec|specification)$", re.IGNORECASE)
_INLINE_TIER = re.compile(r"^\s*[*_]{0,2}tier[*_]{0,2}\s*:\s*[*_]{0,2}\s*(\S+)", re.IGNORECASE)
_BULLET = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+(.*)$")
# Loading (spinner shown)
_TRAILING_PARENTHETICAL = re.compile(r"^(.*?)\s*\(([^()]*)\)[`*_]*$")
_BINDING = re.compile(r"`?\b([A-Z][A-Za-z0-9]*)\.([a-z_][A-Za-z0-9_]*)\b`?")
_EMPTY_SECTION = re.compile(r"^[\s_*(]*(?:none|n/?a|-+|—|no \w+)[\s_*.)]*$", re.IGNORECASE)

# `name`?: `type` rest
_PROP_CODE = re.compile(r"^`([\w$]+)(\??)`\s*(\??)\s*[:—–-]\s*`([^`]+)`(.*)$")
# name (type, optional, default: x): description
_PROP_PAREN = re.compile(r"^[*_]{0,2}`?([\w$]+)(\??)`?[*_]{0,2}\s*\(([^)]*)\)\s*(?:[:—–-]\s*(.*))?$")
# name?: type - description
_PROP_COLON = re.compile(r"^[*_]{0,2}`?([\w$]+)(\??)`?[*_]{0,2}\s*:\s*(.+?)(?:\s+[—–-]\s+(.*))?$")
_DEFAULT_TEXT = re.compile(r"\bdefaults?(?:\s+to)?\s*[:=]?\s*`?([^`,;)]+)`?", re.IGNORECASE)
_CALLBACK = re.compile(r"^`?([\w$]+)\s*(\([^)]*\))?`?\s*(?::\s*`?(\([^)]*\)\s*=>[^`]*)`?)?")


class SpecParser:
    """
    Parse component specification markdown.

    Stateless; one instance may be shared across threads.
    """

    def parse_file(self, path: Path) -> SpecRecord:
        """Read and parse a spec file. Read errors propagate to the caller."""
        record = self.parse(path.read_text(encoding="utf-8"), default_name=_name_from_path(path))
        record.path = path
        return record

    def parse(self, text: str, default_name: str = "") -> SpecRecord:
        """
        Parse spec markdown.

        Args:
            text: Markdown source
            default_name: Name to use when neither front matter nor H1 gives one

        Returns:
            SpecRecord; never raises on malformed content
        """
        text = text.replace("\r\n", "\n")
        front, body = _split_front_matter(text)
        record = SpecRecord(name=default_name)
        problems: List[str] = []
        named_in_meta = False

        if front is not None:
            try:
                meta = yaml.safe_load(front) or {}
            except yaml.YAMLError as e:
                meta = {}
                problems.append(f"front matter is not valid YAML: {_first_line(str(e))}")
            if not isinstance(meta, dict):
                problems.append("front matter is not a mapping")
                meta = {}
            name = meta.get("name") or meta.get("component")
            if name:
                record.name = str(name)
                named_in_meta = True
            if "tier" in meta:
                self._set_tier(record, meta["tier"], "front matter")

        title, preamble, sections = _split_sections(body)
        if title:
            tier_in_title = _H1_TIER.search(title)
            name = _TITLE_SUFFIX.sub("", _strip_md(_H1_TIER.sub("", title)).strip(" -—–:|"))
            if name and not named_in_meta:
                record.name = name
            if tier_in_title and record.tier is None and record.tier_error is None:
                self._set_tier(record, tier_in_title.group(1) or tier_in_title.group(2), "title")

        if record.tier is None and record.tier_error is None:
            for line in preamble.splitlines():
                inline = _INLINE_TIER.match(line)
                if inline:
                    self._set_tier(record, inline.group(1), "preamble")
                    break

        for key, content in sections:
            if key in record.section_text:
                record.section_text[key] += "\n" + content
            else:
                record.section_text[key] = content
            record.sections.add(key)

        if "tier" in record.section_text:
            record.sections.add("tier")
            if record.tier is None and record.tier_error is None:
                self._set_tier(record, record.section_text["tier"], "tier section")
        elif record.tier is not None or record.tier_error is not None:
            record.sections.add("tier")

        if "props" in record.section_text:
            record.props, review = self.parse_props(record.section_text["props"])
            record.review_lines.extend(review)
        if "states" in record.section_text:
            record.states = self.parse_states(record.section_text["states"])
        if "callbacks" in record.section_text:
            record.callbacks = self.parse_callbacks(record.section_text["callbacks"])
        if "data-bindings" in record.section_text:
            record.data_bindings = self.parse_bindings(record.section_text["data-bindings"])
        if "accessibility" in record.section_text:
            record.accessibility = self.parse_notes(record.section_text["accessibility"])

        record.review_lines.extend(problems)
        logger.debug(
            "Parsed spec %s: tier=%s sections=%s props=%d",
            record.name, record.tier, sorted(record.sections), len(record.props),
        )
        return record

    def _set_tier(self, record: SpecRecord, value, where: str) -> None:
        if isinstance(value, bool):
            value = None
        if isinstance(value, int):
            number = value
        else:
            text = str(value or "")
            match = _TIER_VALUE.match(_first_content_line(text)) or _TIER_ANYWHERE.search(text)
            number = int(match.group(1)) if match else None

        if number is None:
            record.tier_error = f"cannot read tier from {where}: {_first_content_line(str(value or ''))!r}"
        elif not MIN_TIER <= number <= MAX_TIER:
            record.tier_error = f"tier {number} in {where} is outside {MIN_TIER}-{MAX_TIER}"
        else:
            record.tier = number

    def parse_props(self, content: str) -> Tuple[Dict[str, PropInfo], List[str]]:
        """
        Parse a props section.

        Tries, in order: a fenced TypeScript type block, a markdown table,
        then bullet prose. Returns (props, lines needing manual review).
        """
        for lang, code in _code_blocks(content):
            if lang in ("ts", "tsx", "typescript", "") and re.search(r"\b(interface|type)\s+\w+", code):
                blocks = find_type_blocks(code)
                if blocks:
                    preferred = next((b for b in blocks if b.name.endswith("Props")), blocks[0])
                    props, unparsed = parse_type_members(preferred.body)
                    return {p.name: p for p in props}, [f"props: {u}" for u in unparsed]

        table = _parse_table(content)
        if table is not None:
            return _props_from_table(table)

        props: Dict[str, PropInfo] = {}
        review: List[str] = []
        prose = _strip_code_blocks(content)
        for raw in prose.splitlines():
            line = raw.strip()
            if not line or _EMPTY_SECTION.match(line):
                continue
            bullet = _BULLET.match(line)
            if not bullet:
                # lead-in sentences are not props
                if line.endswith(":"):
                    continue
                review.append(f"props: {line}")
                continue
            prop = _parse_prop_bullet(bullet.group(1).strip())
            if prop is None:
                review.append(f"props: {line}")
            else:
                props[prop.name] = prop
        return props, review

    def parse_states(self, content: str) -> Dict[str, StateInfo]:
        states: Dict[str, StateInfo] = {}
        table = _parse_table(content)
        if table is not None:
            header, rows = table
            for row in rows:
                if row and row[0].strip():
                    label, description = _split_parenthetical(_strip_md(row[0]), " ".join(row[1:]).strip())
                    name = normalize_state_name(_strip_md(label))
                    if name:
                        states[name] = StateInfo(name, description)
            return states

        for raw in _strip_code_blocks(content).splitlines():
            bullet = _BULLET.match(raw)
            # nested bullets describe the state above them
            if not bullet or raw.startswith("  "):
                continue
            text = bullet.group(1).strip()
            name, description = _split_label(text)
            name = normalize_state_name(_strip_md(name))
            if name and not _EMPTY_SECTION.match(name):
                states[name] = StateInfo(name, description)
        return states

    def parse_callbacks(self, content: str) -> Dict[str, CallbackInfo]:
        callbacks: Dict[str, CallbackInfo] = {}
        for lang, code in _code_blocks(content):
            for block in find_type_blocks(code):
                props, _ = parse_type_members(block.body)
                for prop in props:
                    callbacks[prop.name] = CallbackInfo(prop.name, function_params(prop.type))
        if callbacks:
            return callbacks

        table = _parse_table(content)
        if table is not None:
            lines = []
            for row in table[1]:
                signature = next((_strip_md(c) for c in row[1:] if "(" in c), "")
                lines.append(_strip_md(row[0]) + (f": {signature}" if signature else ""))
        else:
            lines = [
                b.group(1) for b in map(_BULLET.match, _strip_code_blocks(content).splitlines())
                if b and not b.group(0).startswith("  ")
            ]

        for text in lines:
            text = _strip_md(text.strip())
            if _EMPTY_SECTION.match(text):
                continue
            match = _CALLBACK.match(text)
            if not match or not re.match(r"[A-Za-z_$]", match.group(1)):
                continue
            name = match.group(1)
            signature = match.group(2) or match.group(3) or ""
            callbacks[name] = CallbackInfo(name, function_params(signature))
        return callbacks

    def parse_bindings(self, content: str) -> List[str]:
        seen: List[str] = []
        for entity, attr in _BINDING.findall(content):
            ref = f"{entity}.{attr}"
            if ref not in seen:
                seen.append(ref)
        return seen

    def parse_notes(self, content: str) -> List[str]:
        notes = []
        for raw in _strip_code_blocks(content).splitlines():
            line = raw.strip()
            if not line or re.match(r"^\|?\s*:?-{2,}", line) or _EMPTY_SECTION.match(line):
                continue
            bullet = _BULLET.match(line)
            note = bullet.group(1).strip() if bullet else line
            if note and not _EMPTY_SECTION.match(note):
                notes.append(note)
        return notes


def section_key(heading: str) -> str:
    """Normalise a heading: "Data Bindings" -> "data-bindings", "3. Props:" -> "props"."""
    text = re.sub(r"^\s*\d+(?:\.\d+)*[.)]?\s+", "", heading)
    text = re.sub(r"\([^)]*\)", "", text)
    text = _strip_md(text).strip().rstrip(":").lower()
    key = re.sub(r"[^a-z0-9]+", "-", text).strip("-")
    return SECTION_ALIASES.get(key, key)


def _split_front_matter(text: str) -> Tuple[Optional[str], str]:
    match = _FRONT_MATTER.match(text)
    if not match:
        return None, text
    return match.group(1), text[match.end():]


def _split_sections(body: str) -> Tuple[Optional[str], str, List[Tuple[str, str]]]:
    """Return (H1 title, text before first H2, [(section key, content)])."""
    title = None
    preamble: List[str] = []
    sections: List[Tuple[str, List[str]]] = []
    fence = None

    for line in body.splitlines():
        fence_match = _FENCE.match(line)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker
            elif marker == fence:
                fence = None
        heading = _HEADING.match(line) if fence is None and not fence_match else None

        if heading and len(heading.group(1)) == 1 and title is None:
            title = heading.group(2)
            continue
        if heading and len(heading.group(1)) == 2:
            sections.append((section_key(heading.group(2)), []))
            continue
        if sections:
            sections[-1][1].append(line)
        else:
            preamble.append(line)

    return title, "\n".join(preamble), [(k, "\n".join(v).strip("\n")) for k, v in sections]


def _code_blocks(content: str) -> List[Tuple[str, str]]:
    blocks = []
    for match in re.finditer(r"^\s*(```|~~~)\s*([\w+-]*)[^\n]*\n(.*?)^\s*\1\s*$", content, re.DOTALL | re.MULTILINE):
        blocks.append((match.group(2).lower(), match.group(3)))
    return blocks


def _strip_code_blocks(content: str) -> str:
    return re.sub(r"^\s*(```|~~~).*?^\s*\1\s*$", "", content, flags=re.DOTALL | re.MULTILINE)


def _parse_table(content: str) -> Optional[Tuple[List[str], List[List[str]]]]:
    """First markdown table in content as (lowercased header, rows), or None."""
    lines = [line.strip() for line in _strip_code_blocks(content).splitlines()]
    for i in range(len(lines) - 1):
        if lines[i].startswith("|") and re.match(r"^\|?\s*:?-{2,}", lines[i + 1]):
            header = [c.lower() for c in _cells(lines[i])]
            rows = []
            for line in lines[i + 2:]:
                if not line.startswith("|"):
                    break
                rows.append(_cells(line))
            return header, rows
    return None


def _cells(line: str) -> List[str]:
    line = line.strip().strip("|")
    cells = re.split(r"(?<!\\)\|", line)
    return [c.strip().replace("\\|", "|") for c in cells]


def _props_from_table(table) -> Tuple[Dict[str, PropInfo], List[str]]:
    header, rows = table

    def column(*names):
        for idx, cell in enumerate(header):
            if any(n in cell for n in names):
                return idx
        return None

    name_col = column("prop", "name")
    type_col = column("type")
    required_col = column("required")
    optional_col = column("optional")
    default_col = column("default")

    props: Dict[str, PropInfo] = {}
    review: List[str] = []
    if name_col is None:
        return props, [f"props: table has no Prop/Name column ({' | '.join(header)})"]

    for row in rows:
        cell = lambda idx: row[idx].strip() if idx is not None and idx < len(row) else ""
        raw_name = _strip_md(cell(name_col))
        name_match = re.match(r"^([\w$]+)(\??)$", raw_name)
        if not name_match:
            review.append(f"props: | {' | '.join(row)} |")
            continue
        optional = bool(name_match.group(2))
        if required_col is not None:
            optional = optional or _falsy(cell(required_col))
        if optional_col is not None:
            optional = optional or _truthy(cell(optional_col))
        default = _strip_md(cell(default_col)) if default_col is not None else ""
        props[name_match.group(1)] = PropInfo(
            name=name_match.group(1),
            type=normalize_type(_strip_md(cell(type_col))) if type_col is not None else "unknown",
            optional=optional,
            default=None if default in ("", "-", "—", "n/a", "N/A") else default,
        )
    return props, review


def _parse_prop_bullet(text: str) -> Optional[PropInfo]:
    match = _PROP_CODE.match(text)
    if match:
        name, q1, q2, type_text, rest = match.groups()
        return PropInfo(
            name=name,
            type=normalize_type(type_text),
            optional=bool(q1 or q2) or "optional" in rest.lower(),
            default=_default_from(rest),
        )

    match = _PROP_PAREN.match(text)
    if match:
        name, q, inner, rest = match.groups()
        parts = [p.strip() for p in inner.split(",")]
        type_text = _strip_md(parts[0]) if parts else "unknown"
        flags = " ".join(parts[1:]).lower()
        return PropInfo(
            name=name,
            type=normalize_type(type_text) or "unknown",
            optional=bool(q) or "optional" in flags,
            default=_default_from(", ".join(parts[1:])) or _default_from(rest or ""),
        )

    match = _PROP_COLON.match(text)
    if match:
        name, q, type_text, rest = match.groups()
        type_text = _strip_md(type_text)
        # "name: a description in words" is prose, not a type
        if re.search(r"[a-z]+\s+[a-z]+\s+[a-z]+", type_text) and not re.search(r"[|<>()\[\]{}'\"]", type_text):
            return None
        return PropInfo(
            name=name,
            type=normalize_type(type_text),
            optional=bool(q) or "optional" in (rest or "").lower(),
            default=_default_from(rest or ""),
        )
    return None


def _default_from(text: str) -> Optional[str]:
    match = _DEFAULT_TEXT.search(text or "")
    return match.group(1).strip() if match else None


def _split_label(text: str) -> Tuple[str, str]:
    """
    '**Loading**: shows a skeleton' -> ('Loading', 'shows a skeleton').

    A trailing parenthetical on the label joins the description:
    'Loading (spinner shown)' -> ('Loading', 'spinner shown').
    """
    text = text.strip()
    bold = re.match(r"^\*\*([^*]+)\*\*\s*[:—–-]?\s*(.*)$", text)
    if bold:
        name, rest = bold.group(1).rstrip(":"), bold.group(2)
    else:
        name, rest = text, ""
        for sep in (":", " — ", " – ", " - "):
            if sep in text:
                name, _, rest = text.partition(sep)
                break
    return _split_parenthetical(name, rest.strip())


def _split_parenthetical(name: str, description: str) -> Tuple[str, str]:
    match = _TRAILING_PARENTHETICAL.match(name.strip())
    if not match or not match.group(1).strip():
        return name, description
    note = match.group(2).strip()
    return match.group(1), f"{note}; {description}" if description else note


def _strip_md(text: str) -> str:
    return text.strip().strip("`*_").strip()


def _truthy(text: str) -> bool:
    return _strip_md(text).lower() in ("yes", "y", "true", "✓", "✔", "x", "optional")


def _falsy(text: str) -> bool:
    return _strip_md(text).lower() in ("no", "n", "false", "✗", "✘", "-", "optional")


def _first_content_line(content: str) -> str:
    for line in content.splitlines():
        line = _strip_md(line.strip().lstrip("-*+ ").strip())
        if line:
            return line
    return ""


def _first_line(text: str) -> str:
    return text.strip().splitlines()[0] if text.strip() else text


def _name_from_path(path: Path) -> str:
    name = path.name
    for suffix in (".spec.md", ".md"):
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return path.stem
