"""
Spec Writer
===========
Renders a *.spec.md from what the code says, so that re-parsing the
rendered spec and checking it against the same source finds no drift.

Sections the code cannot describe (data sources, server actions, form
schema, route) are rendered with placeholder text for a human to fill in.
"""
from __future__ import annotations

import re
from typing import List, Optional

from tiergate.analysis.models import CodeRecord, Confidence
from tiergate.analysis.tier_table import TierRuleTable

SECTION_ORDER = (
    "tier",
    "props",
    "states",
    "callbacks",
    "data-bindings",
    "data-sources",
    "server-actions",
    "form-schema",
    "route",
    "accessibility",
)

PLACEHOLDERS = {
    "data-bindings": "List the entity fields this component displays.",
    "data-sources": "Where the data comes from (action, service, context).",
    "server-actions": "Server actions invoked and what they return.",
    "form-schema": "Validation schema and field rules.",
    "route": "Route path and access requirements.",
}


def section_title(key: str) -> str:
    """'data-bindings' -> 'Data Bindings'."""
    return " ".join(word.capitalize() for word in key.split("-"))


def render_spec(code: CodeRecord, tier: int, table: TierRuleTable, name: Optional[str] = None) -> str:
    """
    Render spec markdown for a component.

    Args:
        code: Introspected component
        tier: Tier to declare
        table: Tier rule table (supplies the required sections)
        name: Component name (default: code.name)

    Returns:
        Markdown text
    """
    definition = table.get(tier)
    name = name or code.name

    sections = set(definition.required_sections) | {"tier", "props", "states"}
    if code.callbacks:
        sections.add("callbacks")
    if code.interactive_elements:
        sections.add("accessibility")

    lines: List[str] = [f"# {name}", ""]
    if definition.summary:
        lines += [definition.summary, ""]

    for key in SECTION_ORDER:
        if key not in sections:
            continue
        lines += [f"## {section_title(key)}", ""]
        lines += _section_body(key, code, tier, definition.name, name)
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def _section_body(key: str, code: CodeRecord, tier: int, tier_name: str, name: str) -> List[str]:
    if key == "tier":
        return [f"Tier {tier} ({tier_name})"]

    if key == "props":
        if not code.props:
            return ["None."]
        body = ["```ts", f"interface {name}Props {{"]
        for prop in code.props.values():
            member = prop.name if re.match(r"^[\w$]+$", prop.name) else f"'{prop.name}'"
            line = f"  {member}{'?' if prop.optional else ''}: {prop.type};"
            if prop.default is not None:
                line += f" // default: {prop.default}"
            body.append(line)
        body += ["}", "```"]
        heuristic = [p.name for p in code.props.values() if p.confidence == Confidence.HEURISTIC]
        if heuristic:
            body += ["", "Types inferred from destructuring only; replace `unknown` with the real types."]
        return body

    if key == "states":
        if not code.states:
            return ["No conditional states."]
        return [f"- {state.name}: {state.description}" for state in code.states.values()]

    if key == "callbacks":
        if not code.callbacks:
            return ["None."]
        return [f"- `{cb.name}({', '.join(cb.params)})`" for cb in code.callbacks.values()]

    if key == "accessibility":
        if not code.interactive_elements:
            return ["No interactive elements."]
        return [
            f"- `{element}`: describe its accessible name, keyboard behaviour and focus handling."
            for element in code.interactive_elements
        ]

    return [PLACEHOLDERS.get(key, "Describe this section.")]
