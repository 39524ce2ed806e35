"""
TypeScript Snippet Parsing
==========================
Lightweight, regex-and-bracket parsing of the TypeScript constructs the
checker reads: props interfaces/type literals, function signatures and
destructured parameter lists.

This is deliberately not a TypeScript parser. It handles the shapes that
component code and spec props blocks actually use and reports anything
else back to the caller to treat as low confidence.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from tiergate.analysis.models import PropInfo

_OPENERS = {"{": "}", "(": ")", "[": "]", "<": ">"}

_INTERFACE = re.compile(
    r"(?:export\s+)?interface\s+([\w$]+)\s*(?:<[^>{]*>)?\s*(?:extends\s+([^{]+?))?\s*\{"
)
_TYPE_ALIAS = re.compile(r"(?:export\s+)?type\s+([\w$]+)\s*(?:<[^>=]*>)?\s*=\s*")
_MEMBER = re.compile(
    r"^(?:readonly\s+)?([\w$]+|'[^']+'|\"[^\"]+\")\s*(\?)?\s*(:|\()"
)
_DEFAULT_DOC = re.compile(
    r"(?:@default\s+|\bdefaults?\s*[:=]\s*|\bdefaults to\s+)(.+?)\s*(?:\*/)?\s*$", re.IGNORECASE
)
# ): JSX.Element {   /   ) => (
_BODY_OPENING = re.compile(r"\s*(?::\s*[\w$.<>\[\]|,\s]*?(?=\s*(?:=>|\{)))?\s*(?:=>)?\s*")
_TOP_LEVEL_STATEMENT = re.compile(
    r"^(?:export|function|async|const|let|var|class|interface|type|enum|import)\b", re.MULTILINE
)


@dataclass
class TypeBlock:
    """A named object type: its name, body text and what it extends."""

    name: str
    body: str
    extends: List[str] = field(default_factory=list)
    line: int = 0


@dataclass
class ComponentSignature:
    """
    An exported function component.

    Attributes:
        name: Component name
        props_type: Name of the annotated props type, if any
        destructured: Destructured prop names -> default expression (or None)
        body: Function body text
        line: 1-based line of the declaration
    """

    name: str
    props_type: Optional[str] = None
    destructured: Dict[str, Optional[str]] = field(default_factory=dict)
    body: str = ""
    line: int = 0


def _brace_block(text: str, open_index: int) -> Optional[str]:
    close = matching_close(text, open_index)
    if close == -1:
        return None
    return text[open_index + 1:close]


def matching_close(text: str, open_index: int) -> int:
    """Index of the bracket closing the one at `open_index` (same kind only), or -1."""
    opener = text[open_index]
    closer = _OPENERS[opener]
    depth = 0
    quote = None
    i = open_index
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "'\"`":
            quote = ch
        elif ch == opener:
            depth += 1
        elif ch == closer:
            if not (ch == ">" and i > 0 and text[i - 1] == "="):
                depth -= 1
                if depth == 0:
                    return i
        i += 1
    return -1


def find_type_blocks(text: str) -> List[TypeBlock]:
    """Find every `interface X {}` and `type X = {}` (or `= A & {}`) in text."""
    blocks: List[TypeBlock] = []

    for match in _INTERFACE.finditer(text):
        body = _brace_block(text, match.end() - 1)
        if body is None:
            continue
        extends = [e.strip() for e in (match.group(2) or "").split(",") if e.strip()]
        blocks.append(TypeBlock(match.group(1), body, extends, _line(text, match.start())))

    for match in _TYPE_ALIAS.finditer(text):
        start = match.end()
        brace = _first_top_level_brace(text, start)
        if brace is None:
            continue
        body = _brace_block(text, brace)
        if body is None:
            continue
        prefix = text[start:brace]
        extends = [p.strip() for p in prefix.split("&") if p.strip()]
        blocks.append(TypeBlock(match.group(1), body, extends, _line(text, match.start())))

    blocks.sort(key=lambda b: b.line)
    return blocks


def _first_top_level_brace(text: str, start: int) -> Optional[int]:
    """Position of the object literal in `type X = A & { ... }`, stopping at ';'."""
    depth = 0
    for i in range(start, len(text)):
        ch = text[i]
        if ch == "{" and depth == 0:
            return i
        if ch in "(<[":
            depth += 1
        elif ch in ")]" or (ch == ">" and text[i - 1] != "="):
            depth = max(depth - 1, 0)
        elif ch in ";\n" and depth == 0 and text[start:i].strip() and not text[start:i].rstrip().endswith(("&", "|", "=")):
            return None
    return None


def find_props_type(text: str, component_name: Optional[str] = None) -> Optional[TypeBlock]:
    """
    Pick the props type of a component.

    Prefers `{component_name}Props`, then the props type annotated on the
    component, then any single `*Props` type.
    """
    blocks = [b for b in find_type_blocks(text) if b.name.endswith("Props")]
    if not blocks:
        return None
    if component_name:
        for block in blocks:
            if block.name == f"{component_name}Props":
                return block
    if component_name:
        signature = find_component(text, component_name)
        if signature and signature.props_type:
            for block in blocks:
                if block.name == signature.props_type:
                    return block
    return blocks[0] if len(blocks) == 1 else next((b for b in blocks if b.name == "Props"), blocks[0])


def _split_members(body: str) -> List[Tuple[str, str]]:
    """
    Split a type-literal body into (member text, attached comment) pairs.

    Members end at top-level ';' ',' or newline unless the text continues a
    type (leading '|' or '&', trailing '|' '&' ':' '=>' or open brackets).
    Comments before a member, or after it on the same line, attach to it.
    """
    pieces: List[Tuple[str, str]] = []
    current: List[str] = []
    doc: List[str] = []
    pending_doc: List[str] = []
    depth = 0
    quote = None
    # True between a member's closing ';' and the end of its line
    trailing = False
    i = 0

    def flush():
        text = "".join(current).strip()
        if text:
            pieces.append((text, " ".join(pending_doc + doc)))
        current.clear()
        doc.clear()
        pending_doc.clear()

    def attach(comment: str):
        if "".join(current).strip():
            doc.append(comment)
        elif trailing and pieces:
            text, existing = pieces[-1]
            pieces[-1] = (text, f"{existing} {comment}".strip())
        else:
            pending_doc.append(comment)

    while i < len(body):
        ch = body[i]
        if quote:
            current.append(ch)
            if ch == "\\" and i + 1 < len(body):
                current.append(body[i + 1])
                i += 2
                continue
            if ch == quote:
                quote = None
            i += 1
            continue

        if body.startswith("//", i):
            end = body.find("\n", i)
            end = len(body) if end == -1 else end
            attach(body[i + 2:end].strip())
            i = end
            continue
        if body.startswith("/*", i):
            end = body.find("*/", i + 2)
            end = len(body) if end == -1 else end + 2
            comment = body[i + 2:end - 2] if body[end - 2:end] == "*/" else body[i + 2:end]
            attach(" ".join(line.strip().lstrip("*").strip() for line in comment.splitlines()).strip())
            i = end
            continue

        if ch == "\n":
            trailing = False
        elif not ch.isspace() and ch not in ";,":
            trailing = False

        if ch in "'\"`":
            quote = ch
        elif ch in "{([<":
            depth += 1
        elif ch in "})]" or (ch == ">" and i > 0 and body[i - 1] != "="):
            depth = max(depth - 1, 0)

        if depth == 0 and ch in ";,\n":
            so_far = "".join(current).strip()
            nxt = body[i + 1:].lstrip()
            continues = (
                so_far.endswith(("|", "&", ":", "=>", "?"))
                or nxt.startswith(("|", "&", "=>"))
                or not so_far
            )
            if ch in ";," or not continues:
                if so_far:
                    flush()
                    trailing = ch in ";,"
                i += 1
                continue
            current.append(" ")
            i += 1
            continue

        current.append(ch)
        i += 1

    flush()
    return pieces


def parse_type_members(body: str) -> Tuple[List[PropInfo], List[str]]:
    """
    Parse the members of an object type body.

    Returns:
        (props, unparsed member texts)
    """
    props: List[PropInfo] = []
    unparsed: List[str] = []

    for text, comment in _split_members(body):
        text = text.strip().rstrip(";,").strip()
        if not text or text.startswith("["):
            # index signatures carry no named prop
            continue
        match = _MEMBER.match(text)
        if not match:
            unparsed.append(text)
            continue

        name = match.group(1).strip("'\"")
        optional = bool(match.group(2))
        if match.group(3) == "(":
            # method signature: onClick(event: Event): void
            params_close = matching_close(text, match.end() - 1)
            params = text[match.end():params_close] if params_close != -1 else ""
            ret = text[params_close + 1:].lstrip(": ").strip() if params_close != -1 else "void"
            type_text = f"({params}) => {ret or 'void'}"
        else:
            type_text = text[match.end():].strip()

        default = None
        if comment:
            found = _DEFAULT_DOC.search(comment)
            if found:
                default = found.group(1).strip().strip("`")

        props.append(
            PropInfo(name=name, type=normalize_type(type_text), optional=optional, default=default)
        )
    return props, unparsed


def function_params(type_text: str) -> List[str]:
    """Parameter names of a function type: "(id: string, e?: Event) => void" -> ["id", "e"]."""
    text = type_text.strip()
    if not text.startswith("("):
        return []
    close = matching_close(text, 0)
    if close == -1:
        return []
    params = []
    for part in _split_top_level(text[1:close], ","):
        part = part.strip()
        if not part:
            continue
        name = re.match(r"(?:\.\.\.)?([\w$]+)", part)
        if name:
            params.append(name.group(1))
    return params


def _split_top_level(text: str, sep: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    quote = None
    start = 0
    for i, ch in enumerate(text):
        if quote:
            if ch == quote and text[i - 1] != "\\":
                quote = None
            continue
        if ch in "'\"`":
            quote = ch
        elif ch in "{([<":
            depth += 1
        elif ch in "})]" or (ch == ">" and i > 0 and text[i - 1] != "="):
            depth = max(depth - 1, 0)
        elif ch == sep and depth == 0:
            parts.append(text[start:i])
            start = i + 1
    parts.append(text[start:])
    return parts


def normalize_type(type_text: str) -> str:
    """
    Canonical spelling of a type for comparison.

    Collapses whitespace, uses single quotes, drops a trailing
    `| undefined`, and sorts top-level union members.
    """
    text = " ".join(type_text.split()).strip().rstrip(";,").strip()
    text = text.lstrip("|").strip()
    text = re.sub(r'"([^"\\]*)"', r"'\1'", text)
    text = re.sub(r"\s*([(){}\[\]<>,:;|&?])\s*", r"\1", text)
    text = text.replace("=>", " => ").replace("  ", " ")
    members = [m for m in _split_top_level(text, "|") if m.strip()]
    if len(members) > 1:
        members = [m.strip() for m in members if m.strip() != "undefined"]
        text = "|".join(sorted(members))
    return text.strip()


def find_component(text: str, name: Optional[str] = None) -> Optional[ComponentSignature]:
    """
    Locate an exported function component and its destructured props.

    Recognises:
        export default function Name({ a, b = 1 }: NameProps) {...}
        export function Name(props: NameProps) {...}
        export const Name = ({ a }: NameProps) => ...
        export const Name: React.FC<NameProps> = ({ a }) => ...
        const Name = forwardRef<HTMLButtonElement, NameProps>(({ a }, ref) => ...)
    """
    candidates = []
    for match in re.finditer(
        r"(?:export\s+(?:default\s+)?)?(?:async\s+)?function\s+([A-Z][\w$]*)\s*(?:<[^>(]*>)?\s*\(", text
    ):
        candidates.append((match.group(1), match.end() - 1, match.start(), None))
    for match in re.finditer(
        r"(?:export\s+)?const\s+([A-Z][\w$]*)\s*(?::\s*([\w$.]+)(?:<\s*([\w$]+)[^>]*>)?)?\s*=\s*"
        r"(?:(?:React\.)?(?:forwardRef|memo)\s*(?:<[^>]*>)?\s*\(\s*)*(?:async\s*)?(?:function\s*[\w$]*\s*)?\(",
        text,
    ):
        annotated = match.group(3) if match.group(3) else None
        candidates.append((match.group(1), match.end() - 1, match.start(), annotated))

    if not candidates:
        return None

    chosen = None
    if name:
        chosen = next((c for c in candidates if c[0] == name), None)
    if chosen is None:
        default_export = re.search(r"export\s+default\s+(?:function\s+)?([A-Z][\w$]*)", text)
        if default_export:
            chosen = next((c for c in candidates if c[0] == default_export.group(1)), None)
    if chosen is None:
        exported = [c for c in candidates if text[c[2]:c[2] + 6] == "export"]
        chosen = (exported or candidates)[0]

    comp_name, paren, start, annotated = chosen
    close = matching_close(text, paren)
    params_text = text[paren + 1:close] if close != -1 else ""
    first_param = _split_top_level(params_text, ",")[0].strip() if params_text.strip() else ""

    props_type = annotated
    destructured: Dict[str, Optional[str]] = {}
    if first_param.startswith("{"):
        block_close = matching_close(first_param, 0)
        inner = first_param[1:block_close] if block_close != -1 else first_param[1:]
        rest = first_param[block_close + 1:] if block_close != -1 else ""
        annotation = re.match(r"\s*:\s*([\w$.]+)", rest)
        if annotation:
            props_type = annotation.group(1).split(".")[-1]
        for entry in _split_top_level(inner, ","):
            entry = entry.strip()
            if not entry or entry.startswith("..."):
                continue
            key = re.match(r"([\w$]+)", entry)
            if not key:
                continue
            default = None
            if "=" in entry:
                eq = _top_level_equals(entry)
                if eq != -1:
                    default = entry[eq + 1:].strip()
            destructured[key.group(1)] = default
    else:
        annotation = re.match(r"[\w$]+\s*:\s*([\w$.]+)", first_param)
        if annotation:
            props_type = annotation.group(1).split(".")[-1]

    body_start = close + 1 if close != -1 else paren
    return ComponentSignature(
        name=comp_name,
        props_type=props_type,
        destructured=destructured,
        body=text[body_start:_body_end(text, body_start)],
        line=_line(text, start),
    )


def _body_end(text: str, start: int) -> int:
    """
    End of the function body or arrow expression that follows a parameter list.

    The body never runs past the next top-level statement, so helpers
    declared after the component are not part of it.
    """
    next_statement = _TOP_LEVEL_STATEMENT.search(text, start)
    limit = next_statement.start() if next_statement else len(text)

    pos = _BODY_OPENING.match(text, start).end()
    if pos < len(text) and text[pos] in "{(":
        close = matching_close(text, pos)
        if close != -1:
            return min(close + 1, limit)
    return limit


def _top_level_equals(entry: str) -> int:
    depth = 0
    for i, ch in enumerate(entry):
        if ch in "{([<":
            depth += 1
        elif ch in "})]>":
            depth = max(depth - 1, 0)
        elif ch == "=" and depth == 0 and entry[i + 1:i + 2] != ">" and entry[i - 1:i] not in ("=", "!", "<", ">"):
            return i
    return -1


def _line(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1
