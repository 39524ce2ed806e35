"""
Code Introspector
=================
Extracts a CodeRecord (props, states, callbacks, interactive elements,
request-handler references) from component source.

Signals used, and the confidence each one carries:

    props       `interface XProps` / `type XProps = {...}` members      certain
                destructured parameter names without a props type      heuristic
    callbacks   function-typed prop entries                            certain
                `onX` props whose type is not visibly a function       heuristic
    states      conditional-render keys named isX, hasX, loading,
                error, empty, disabled, submitting, open:
                `if (x) return`, `{x && ...}`, `x ? ... : ...`          certain
                `items.length === 0` checks (-> empty)                 heuristic
                state-like props never used in a branch                heuristic
    elements    <button> <input> <select> <textarea> <a href>,
                configured library components, onClick handlers       certain
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from tiergate.analysis.imports import parse_import_statements
from tiergate.analysis.models import (
    CallbackInfo,
    CodeRecord,
    Confidence,
    PropInfo,
    StateInfo,
    normalize_state_name,
)
from tiergate.analysis.resolver import strip_js_comments
from tiergate.analysis.tier_table import TierRuleTable
from tiergate.analysis.typescript import (
    find_component,
    find_props_type,
    find_type_blocks,
    function_params,
    parse_type_members,
)

logger = logging.getLogger(__name__)

STATE_SIGNALS = ("loading", "error", "empty", "disabled", "submitting", "open")

INTRINSIC_INTERACTIVE = ("button", "input", "select", "textarea")

_PREFIXED_STATE = re.compile(r"^(?:is|has)[A-Z]")
_KEY = r"!?\s*([\w$]+(?:\??\.[\w$]+)*)"
_IF_RETURN = re.compile(r"\bif\s*\(\s*" + _KEY + r"\s*\)\s*\{?\s*return\b")
_AND_RENDER = re.compile(_KEY + r"\s*&&\s*[(<]")
_TERNARY = re.compile(_KEY + r"\s*\?\s*[(<'\"`]")
_EMPTY_CHECK = re.compile(r"([\w$.]+)\.length\s*(?:===?\s*0|<\s*1)\b|!\s*[\w$.]+\.length\b")
_ANCHOR = re.compile(r"<a\b[^>]*\bhref\s*=")
_ON_CLICK = re.compile(r"<([\w.]+)\b[^>]*?\bonClick\s*=")
_HANDLER_CALL = re.compile(r"\b(http|rest|graphql)\.(get|post|put|patch|delete|all|head|options|query|mutation)\s*\(")
_HANDLER_SETUP = re.compile(r"\b(setupWorker|setupServer)\s*\(")
_STORY_MSW = re.compile(r"\bmsw\s*:\s*[{\[]")


class CodeIntrospector:
    """
    Introspect component source with naming-convention heuristics.

    Args:
        table: Tier rule table (supplies the request-handler module patterns)
        interactive_components: Library component names treated as interactive
    """

    def __init__(self, table: TierRuleTable, interactive_components: Sequence[str] = ()):
        self.table = table
        self.interactive_components = tuple(interactive_components)

    def introspect_file(self, path: Path, name: Optional[str] = None) -> CodeRecord:
        """Read and introspect a source file. Read errors propagate to the caller."""
        return self.introspect(path.read_text(encoding="utf-8"), path=path, name=name)

    def introspect(self, text: str, path: Optional[Path] = None, name: Optional[str] = None) -> CodeRecord:
        """
        Introspect component source text.

        Args:
            text: Source text
            path: Source path (recorded only)
            name: Expected component name, used to pick among several exports

        Returns:
            CodeRecord without imports (the runner attaches resolved edges)
        """
        code = strip_js_comments(text)
        signature = find_component(code, name)
        component = signature.name if signature else (name or (path.stem if path else ""))
        record = CodeRecord(name=component, path=path)

        record.props = self._props(text, component, signature)
        record.callbacks = self._callbacks(record.props)
        body = signature.body if signature else code
        record.states = self._states(body, record.props)
        record.interactive_elements = self.interactive_elements(body)
        record.handler_references = self.handler_references(text)

        logger.debug(
            "Introspected %s: %d props, %d states, %d callbacks, interactive=%s",
            component, len(record.props), len(record.states), len(record.callbacks),
            record.interactive_elements,
        )
        return record

    def _props(self, text: str, component: str, signature) -> Dict[str, PropInfo]:
        block = find_props_type(text, component)
        destructured = signature.destructured if signature else {}

        if block is not None:
            members, unparsed = parse_type_members(block.body)
            local = {b.name: b for b in find_type_blocks(text)}
            for parent in block.extends:
                parent_name = re.sub(r"<.*$", "", parent).strip()
                if parent_name in local and parent_name != block.name:
                    inherited, _ = parse_type_members(local[parent_name].body)
                    members = inherited + members
            for item in unparsed:
                logger.debug("%s: unparsed props member %r", component, item)

            props = {p.name: p for p in members}
            for prop_name, default in destructured.items():
                if prop_name in props and default is not None and props[prop_name].default is None:
                    props[prop_name].default = default
            return props

        return {
            prop_name: PropInfo(name=prop_name, optional=default is not None, default=default,
                                confidence=Confidence.HEURISTIC)
            for prop_name, default in destructured.items()
        }

    def _callbacks(self, props: Dict[str, PropInfo]) -> Dict[str, CallbackInfo]:
        callbacks = {}
        for prop in props.values():
            if prop.confidence == Confidence.CERTAIN and prop.is_function:
                callbacks[prop.name] = CallbackInfo(prop.name, function_params(prop.type))
            elif re.match(r"^on[A-Z]", prop.name):
                callbacks[prop.name] = CallbackInfo(prop.name, [], Confidence.HEURISTIC)
        return callbacks

    def _states(self, body: str, props: Dict[str, PropInfo]) -> Dict[str, StateInfo]:
        states: Dict[str, StateInfo] = {}

        for pattern, how in ((_IF_RETURN, "early return"), (_AND_RENDER, "conditional render"),
                             (_TERNARY, "conditional render")):
            for match in pattern.finditer(body):
                key = re.split(r"\??\.", match.group(1))[-1]
                if not is_state_signal(key):
                    continue
                state = normalize_state_name(key)
                if state and state not in states:
                    states[state] = StateInfo(state, f"{how} on `{match.group(1)}`")

        if "empty" not in states and _EMPTY_CHECK.search(body):
            states["empty"] = StateInfo("empty", "empty-list check", Confidence.HEURISTIC)

        for prop in props.values():
            if not is_state_signal(prop.name) or prop.is_function:
                continue
            state = normalize_state_name(prop.name)
            if state and state not in states:
                states[state] = StateInfo(state, f"state-like prop `{prop.name}`", Confidence.HEURISTIC)
        return states

    def interactive_elements(self, body: str) -> List[str]:
        """Interactive elements rendered in `body`, in first-seen order."""
        found: Dict[str, int] = {}

        for tag in INTRINSIC_INTERACTIVE:
            match = re.search(r"<" + tag + r"\b", body)
            if match:
                found[tag] = match.start()
        anchor = _ANCHOR.search(body)
        if anchor:
            found["a[href]"] = anchor.start()
        for component in self.interactive_components:
            match = re.search(r"<" + re.escape(component) + r"\b", body)
            if match:
                found[component] = match.start()
        for match in _ON_CLICK.finditer(body):
            tag = match.group(1)
            if tag not in found and tag != "a":
                found[f"{tag}[onClick]"] = match.start()

        return sorted(found, key=found.get)

    def handler_references(self, text: str) -> List[str]:
        """
        Request-handler mocking references in source text.

        Returns:
            Human-readable references such as "import 'msw' (line 1)" or
            "http.get() (line 12)"
        """
        refs = []
        for raw in parse_import_statements(text):
            if self.table.is_handler_module(raw.specifier):
                refs.append(f"import '{raw.specifier}' (line {raw.line})")

        code = strip_js_comments(text)
        for pattern in (_HANDLER_CALL, _HANDLER_SETUP):
            for match in pattern.finditer(code):
                call = match.group(0).rstrip("( ").replace(" ", "")
                refs.append(f"{call}() (line {_line(code, match.start())})")
        for match in _STORY_MSW.finditer(code):
            refs.append(f"msw story parameters (line {_line(code, match.start())})")
        return refs


def _line(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def is_state_signal(name: str) -> bool:
    """True if an identifier names a visual state (isX, hasX, loading, error, ...)."""
    return bool(_PREFIXED_STATE.match(name)) or name in STATE_SIGNALS
