"""Exceptions raised while turning descriptors into generated source."""

from __future__ import annotations


class DaisyGraphError(Exception):
    """Base exception for daisy-graph errors."""


class ConfigError(DaisyGraphError, ValueError):
    """A target or patch descriptor is malformed.

    ``key`` names the offending component, define, alias or field.
    """

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class UnknownComponentKind(ConfigError):
    """A component instance names a kind the registry does not know."""

    def __init__(self, kind: str, *, key: str | None = None) -> None:
        where = f" (component '{key}')" if key else ""
        super().__init__(f"Unknown component kind '{kind}'{where}", key=key)
        self.kind = kind


class UnresolvedReferenceError(DaisyGraphError, ValueError):
    """A code template references a field its owner does not have."""

    def __init__(self, owner: str, field_name: str, template: str) -> None:
        super().__init__(
            f"'{owner}': template references undefined field '{field_name}' in {template!r}"
        )
        self.owner = owner
        self.field_name = field_name
        self.template = template


class BuildError(DaisyGraphError):
    """The native toolchain failed to build or flash a generated project."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output
