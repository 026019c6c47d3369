"""Error taxonomy shared by the core engines and the persistence layer."""

from __future__ import annotations


class EditorError(Exception):
    """Base class for editor failures."""


class ValidationError(EditorError, ValueError):
    """Malformed input: bad dimensions, corrupt snapshots or documents."""


class LayoutParseError(ValidationError):
    """A layout document failed validation.

    Attributes:
        problems: Every structural problem found, in document order.
    """

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        reason = "; ".join(self.problems) if self.problems else "unknown problem"
        super().__init__(f"Invalid layout document: {reason}")


class StateConsistencyError(EditorError):
    """History cursor moved past its bounds. Callers treat it as a no-op."""


class ResourceResolutionError(EditorError, LookupError):
    """An image reference could not be resolved by the image store."""

    def __init__(self, ref: str, reason: str = "not found") -> None:
        self.ref = ref
        super().__init__(f"Cannot resolve image reference {ref!r}: {reason}")
