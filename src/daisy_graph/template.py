"""Placeholder substitution for component and node code templates.

Two closed placeholder forms are supported, each resolved by explicit lookup
in a field mapping (never evaluated):

- ``${field}`` -- component templates, expanded once per instance while the
  target is normalized (``${name}``, ``${pin_a}``, ``${invert}``, ...).
- ``$<field>`` -- node templates, expanded at emission time against the
  fields of the graph node that owns the fragment (``$<name>``, ``$<data>``).
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from daisy_graph.errors import UnresolvedReferenceError

_INSTANCE_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_NODE_RE = re.compile(r"\$<([A-Za-z_][A-Za-z0-9_]*)>")


def format_value(value: object) -> str:
    """Format a field value for insertion into C++ source."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _substitute(
    pattern: re.Pattern[str], text: str, fields: Mapping[str, object], owner: str
) -> str:
    def repl(m: re.Match[str]) -> str:
        key = m.group(1)
        if key not in fields or fields[key] is None:
            raise UnresolvedReferenceError(owner, key, text)
        return format_value(fields[key])

    return pattern.sub(repl, text)


def expand(text: str, fields: Mapping[str, object], owner: str) -> str:
    """Replace every ``${field}`` in *text*.

    Raises UnresolvedReferenceError naming *owner* if a field is missing.
    """
    return _substitute(_INSTANCE_RE, text, fields, owner)


def interpolate(text: str, fields: Mapping[str, object], owner: str) -> str:
    """Replace every ``$<field>`` in *text*.

    Raises UnresolvedReferenceError naming *owner* if a field is missing.
    """
    return _substitute(_NODE_RE, text, fields, owner)


def has_placeholders(text: str) -> bool:
    """Return True if *text* still contains either placeholder form."""
    return bool(_INSTANCE_RE.search(text) or _NODE_RE.search(text))
