"""Snapshot-based linear undo/redo.

Every entry is a deep-copied `Snapshot` of cards, wall and title. Recording a
state equal to the one at the cursor is a no-op, so callers may record after
every gesture without checking whether anything changed.

Restoring an entry runs inside a `RestoreGuard`. Asynchronous work started
by a restore (image decode, for example) registers a completion through
`RestoreGuard.defer()`. The guard is released only once the apply call has
returned and every deferred completion has fired. Until then `record()`,
`undo()` and `redo()` are suppressed.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import itertools
import math
import time

from loguru import logger

from core.errors import StateConsistencyError, ValidationError
from core.models import MIN_SIZE, Snapshot, is_finite_number
from core.services.interfaces import StateSource

DEFAULT_CAPACITY = 50
DEFAULT_COALESCE_SECONDS = 0.25

_SIZE_EPSILON = 1e-9


@dataclass(frozen=True)
class HistoryEntry:
    """One immutable point in the history list."""

    snapshot: Snapshot
    kind: str
    timestamp: float
    sequence: int


class RestoreGuard:
    """Mutex flag held while a history entry is being applied."""

    def __init__(self) -> None:
        self._depth = 0
        self._pending: set[int] = set()
        self._tokens = itertools.count(1)
        self._on_release: list[Callable[[], None]] = []

    @property
    def active(self) -> bool:
        return self._depth > 0 or bool(self._pending)

    @property
    def pending(self) -> int:
        """Number of deferred completions still outstanding."""
        return len(self._pending)

    def __enter__(self) -> RestoreGuard:
        self._depth += 1
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._depth -= 1
        self._maybe_release()

    def defer(self) -> Callable[[], None]:
        """Register restore-triggered work; call the returned function when done.

        Calling the completion more than once is harmless.
        """
        token = next(self._tokens)
        self._pending.add(token)

        def _complete() -> None:
            if token in self._pending:
                self._pending.discard(token)
                self._maybe_release()

        return _complete

    def on_release(self, callback: Callable[[], None]) -> None:
        """Run `callback` once the guard is fully released (immediately if idle)."""
        if not self.active:
            callback()
            return
        self._on_release.append(callback)

    def _maybe_release(self) -> None:
        if self.active:
            return
        callbacks, self._on_release = self._on_release, []
        for cb in callbacks:
            cb()


def validate_snapshot(snapshot: Snapshot) -> None:
    """Check structural validity before a snapshot touches live state.

    Raises:
        ValidationError: With every problem found.
    """
    problems: list[str] = []
    seen: set[str] = set()
    for pos, card in enumerate(snapshot.cards):
        label = f"card[{pos}]"
        if not isinstance(card.id, str) or not card.id:
            problems.append(f"{label}: missing id")
        elif card.id in seen:
            problems.append(f"{label}: duplicate id {card.id}")
        else:
            seen.add(card.id)
        if not isinstance(card.src, str) or not card.src:
            problems.append(f"{label}: missing image reference")
        for name in ("x", "y", "rotation", "width", "height", "aspect_ratio"):
            if not is_finite_number(getattr(card, name)):
                problems.append(f"{label}: {name} is not a finite number")
        if is_finite_number(card.aspect_ratio) and card.aspect_ratio <= 0:
            problems.append(f"{label}: aspect ratio must be positive")
        for name in ("width", "height"):
            value = getattr(card, name)
            if is_finite_number(value) and value < MIN_SIZE - _SIZE_EPSILON:
                problems.append(f"{label}: {name} below minimum {MIN_SIZE}")
    wall = snapshot.wall
    for name in ("width", "height", "scale"):
        value = getattr(wall, name)
        if not is_finite_number(value) or value <= 0:
            problems.append(f"wall: {name} must be a positive number")
    if problems:
        raise ValidationError("Corrupt history entry: " + "; ".join(problems))


class History:
    """Capacity-bounded linear history over a `StateSource`."""

    def __init__(
        self,
        source: StateSource,
        capacity: int = DEFAULT_CAPACITY,
        coalesce_seconds: float = DEFAULT_COALESCE_SECONDS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self._source = source
        self._capacity = int(capacity)
        self._coalesce = max(0.0, float(coalesce_seconds))
        self._clock = clock or time.monotonic
        self._entries: list[HistoryEntry] = []
        self._cursor = -1
        self._seq = itertools.count()
        self._last_record_at = -math.inf
        self._coalescable = False
        self.guard = RestoreGuard()

    # Introspection
    @property
    def entries(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def restoring(self) -> bool:
        return self.guard.active

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0 and not self.restoring

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._entries) - 1 and not self.restoring

    def current(self) -> HistoryEntry | None:
        return self._entries[self._cursor] if self._cursor >= 0 else None

    def __len__(self) -> int:
        return len(self._entries)

    # Recording
    def reset(self, kind: str = "reset") -> HistoryEntry:
        """Drop all entries and make the current state the single base entry."""
        self._entries.clear()
        self._cursor = -1
        self._coalescable = False
        entry = self._make_entry(self._source.capture(), kind)
        self._entries.append(entry)
        self._cursor = 0
        return entry

    def record(self, kind: str = "edit", force: bool = False) -> bool:
        """Capture the current state as a new entry.

        Args:
            kind: Action tag stored on the entry.
            force: Push a fresh entry even when the state is unchanged and
                never coalesce it (used by load).

        Returns:
            True if a new entry was pushed (or the tail entry was coalesced),
            False if suppressed by a restore or identical to the cursor entry.
        """
        if self.restoring:
            logger.debug("History record '{}' suppressed while restoring", kind)
            return False
        snapshot = self._source.capture()
        now = self._clock()

        if not self._entries or force:
            self._push(self._make_entry(snapshot, kind, now))
            self._coalescable = not force
            return True

        tail = self._entries[self._cursor]
        at_tail = self._cursor == len(self._entries) - 1
        if (
            at_tail
            and self._coalescable
            and self._cursor > 0
            and tail.kind == kind
            and now - self._last_record_at < self._coalesce
        ):
            return self._coalesce_tail(snapshot, kind, now)

        if snapshot == tail.snapshot:
            logger.debug("History record '{}' skipped: state unchanged", kind)
            return False

        self._push(self._make_entry(snapshot, kind, now))
        return True

    def amend(self) -> bool:
        """Replace the cursor entry with the live state, keeping its kind.

        Used for derived refinements that are not user edits, such as sizes
        recomputed after an image decode or a viewport resize.
        """
        if self.restoring or self._cursor < 0:
            return False
        current = self._entries[self._cursor]
        snapshot = self._source.capture()
        if snapshot == current.snapshot:
            return False
        self._entries[self._cursor] = HistoryEntry(
            snapshot=snapshot,
            kind=current.kind,
            timestamp=current.timestamp,
            sequence=current.sequence,
        )
        return True

    def _coalesce_tail(self, snapshot: Snapshot, kind: str, now: float) -> bool:
        previous = self._entries[self._cursor - 1]
        self._last_record_at = now
        if snapshot == previous.snapshot:
            # The burst cancelled itself out.
            self._entries.pop()
            self._cursor -= 1
            self._coalescable = False
            logger.debug("History burst '{}' reverted to previous entry", kind)
            return True
        if snapshot == self._entries[self._cursor].snapshot:
            return False
        self._entries[self._cursor] = self._make_entry(snapshot, kind, now)
        return True

    def _push(self, entry: HistoryEntry) -> None:
        if self._cursor < len(self._entries) - 1:
            dropped = len(self._entries) - 1 - self._cursor
            del self._entries[self._cursor + 1 :]
            logger.debug("History truncated {} redo entries", dropped)
        self._entries.append(entry)
        while len(self._entries) > self._capacity:
            self._entries.pop(0)
        self._cursor = len(self._entries) - 1
        self._last_record_at = entry.timestamp
        self._coalescable = True

    def _make_entry(self, snapshot: Snapshot, kind: str, now: float | None = None) -> HistoryEntry:
        if not isinstance(snapshot, Snapshot):
            raise ValidationError("State source returned a non-snapshot value")
        return HistoryEntry(
            snapshot=snapshot,
            kind=kind,
            timestamp=self._clock() if now is None else now,
            sequence=next(self._seq),
        )

    # Navigation
    def step(self, delta: int) -> HistoryEntry:
        """Move the cursor by `delta` and apply the entry there.

        Raises:
            StateConsistencyError: If the move would leave the history bounds
                or a restore is still in progress.
        """
        if self.restoring:
            raise StateConsistencyError("History is restoring")
        target = self._cursor + delta
        if target < 0 or target >= len(self._entries) or self._cursor < 0:
            raise StateConsistencyError(
                f"Cursor {self._cursor} cannot move by {delta} (size {len(self._entries)})"
            )
        entry = self._entries[target]
        self.apply(entry.snapshot)
        self._cursor = target
        self._coalescable = False
        return entry

    def undo(self) -> bool:
        try:
            entry = self.step(-1)
        except StateConsistencyError as ex:
            logger.debug("Nothing to undo: {}", ex)
            return False
        logger.info("Undo -> entry {} ({})", entry.sequence, entry.kind)
        return True

    def redo(self) -> bool:
        try:
            entry = self.step(1)
        except StateConsistencyError as ex:
            logger.debug("Nothing to redo: {}", ex)
            return False
        logger.info("Redo -> entry {} ({})", entry.sequence, entry.kind)
        return True

    def apply(self, snapshot: Snapshot) -> None:
        """Validate, then apply `snapshot` to the live state under the guard."""
        validate_snapshot(snapshot)
        with self.guard:
            self._source.apply(snapshot, self.guard)
