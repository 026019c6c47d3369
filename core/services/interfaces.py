"""Core service interfaces and shared data structures.

This module defines the collaborator protocols the core calls out to (image
store, photo source, viewport) and the state-source protocol the history
engine snapshots through. Concrete implementations live in the
infrastructure and app layers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from core.models import Snapshot
    from core.services.history import RestoreGuard


@dataclass(frozen=True)
class PhotoRef:
    """A photo available to be placed on the canvas.

    Attributes:
        src: Remote URL or `local:<id>` handle.
        photographer: Caption shown under the card.
        width: Natural pixel width when known (0 when unknown).
        height: Natural pixel height when known (0 when unknown).
    """

    src: str
    photographer: str = ""
    width: int = 0
    height: int = 0

    @property
    def aspect_ratio(self) -> float | None:
        if self.width > 0 and self.height > 0:
            return self.width / self.height
        return None


@dataclass
class LoadResult:
    """Outcome of a layout load.

    Attributes:
        card_count: Number of cards now in the registry.
        wall_visible: Whether the loaded wall is shown.
        migrated_from: Source document version when a migration ran.
    """

    card_count: int
    wall_visible: bool
    migrated_from: int | None = None


class StateSource(Protocol):
    """What the history engine snapshots and restores."""

    def capture(self) -> Snapshot:
        """Return a deep-copied snapshot of the live state."""
        ...

    def apply(self, snapshot: Snapshot, guard: RestoreGuard) -> None:
        """Replace the live state with `snapshot`.

        Work that completes asynchronously must call `guard.defer()` and
        invoke the returned callable once finished.
        """
        ...


class ImageStore(Protocol):
    """Resolves local upload references to displayable sources."""

    def store(self, data: bytes) -> str:
        """Persist image bytes and return a `local:<id>` reference."""
        ...

    def resolve(self, ref: str) -> str:
        """Return a path or URL for `ref`; raise `ResourceResolutionError` if unknown."""
        ...

    def natural_size(self, ref: str) -> tuple[int, int] | None:
        """Natural (width, height) of a stored image, when known."""
        ...


class PhotoSource(Protocol):
    """Supplies photos for the "add photos" command."""

    def draw(self, count: int) -> list[PhotoRef]:
        """Return up to `count` photos not handed out before."""
        ...

    def reset(self) -> None:
        """Make every photo available again."""
        ...


class Viewport(Protocol):
    """Current size of the visible canvas."""

    @property
    def width(self) -> float: ...

    @property
    def height(self) -> float: ...
