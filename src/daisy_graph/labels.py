"""Prefix resolution of patch labels against hardware label tables."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import NamedTuple, Optional

_TYPE_TOKEN_RE = re.compile(r"^(?:(int|bool)(?:_(.*))?|(.+)_(int|bool))$")


class LabelMatch(NamedTuple):
    key: str  # matching table key
    target: str  # node name the key refers to
    label: str  # remaining label (capture group, or the full label)


def resolve_label(label: str, table: Mapping[str, str]) -> Optional[LabelMatch]:
    """Resolve *label* against the keys of *table*.

    Keys are tested in sorted order as the prefix pattern ``^<key>_?(.+)?``;
    every match overwrites the previous one, so the last matching key in
    sorted order wins (``knob10`` beats ``knob1`` for ``knob10_cutoff``).
    Returns None when no key matches.
    """
    result: Optional[LabelMatch] = None
    for key in sorted(table):
        m = re.match(f"^{re.escape(key)}_?(.+)?", label)
        if m:
            result = LabelMatch(key, table[key], m.group(1) or label)
    return result


def split_type_token(label: str) -> tuple[str, str]:
    """Strip an ``int``/``bool`` type token from *label*.

    The token may lead (``int_mode``) or trail (``mode_int``) the label.
    Returns ``(type, label)``; type is ``"float"`` when there is no token.
    A bare ``int`` or ``bool`` sets the type but is kept as the label.
    """
    m = _TYPE_TOKEN_RE.match(label)
    if not m:
        return "float", label
    if m.group(1):
        return m.group(1), m.group(2) or label
    return m.group(4), m.group(3)
