from __future__ import annotations

import math

import pytest

from conftest import FakeClock, make_card
from core.errors import StateConsistencyError, ValidationError
from core.models import EditorState, Snapshot
from core.services.history import History, RestoreGuard, validate_snapshot


class StateHolder:
    """Minimal state source over an EditorState."""

    def __init__(self, defer: bool = False) -> None:
        self.state = EditorState()
        self.defer = defer
        self.completions = []

    def capture(self) -> Snapshot:
        return Snapshot.capture(self.state)

    def apply(self, snapshot: Snapshot, guard: RestoreGuard) -> None:
        self.state.cards[:] = snapshot.restore_cards()
        self.state.wall = snapshot.wall.copy()
        self.state.title = snapshot.title
        if self.defer:
            self.completions.append(guard.defer())


def _history(source=None, clock=None, **kwargs) -> History:
    source = source or StateHolder()
    history = History(source, clock=clock or FakeClock(), **kwargs)
    history.reset("init")
    return history


def test_reset_creates_single_base_entry():
    history = _history()
    assert len(history) == 1
    assert history.cursor == 0
    assert not history.can_undo
    assert not history.can_redo


def test_undo_then_redo_restores_states():
    source = StateHolder()
    history = _history(source)
    source.state.cards.append(make_card("A", x=10))
    assert history.record("add")
    source.state.cards[0].x = 99
    assert history.record("move")

    assert history.undo()
    assert source.state.cards[0].x == 10
    assert history.undo()
    assert source.state.cards == []
    assert not history.undo()

    assert history.redo()
    assert history.redo()
    assert source.state.cards[0].x == 99
    assert not history.redo()


def test_record_unchanged_state_is_noop():
    source = StateHolder()
    history = _history(source)
    assert not history.record("edit")
    assert len(history) == 1


def test_selection_alone_never_records():
    source = StateHolder()
    source.state.cards.append(make_card("A"))
    history = _history(source)
    source.state.cards[0].selected = True
    assert not history.record("select")


def test_new_record_truncates_redo_branch():
    source = StateHolder()
    history = _history(source)
    source.state.title = "one"
    history.record("title")
    source.state.title = "two"
    history.record("title")
    history.undo()
    source.state.title = "three"
    history.record("title")
    assert len(history) == 3
    assert not history.can_redo
    assert [e.snapshot.title for e in history.entries] == ["Untitled", "one", "three"]


def test_capacity_evicts_oldest_entries():
    source = StateHolder()
    history = _history(source, capacity=5)
    for i in range(10):
        source.state.title = f"t{i}"
        history.record("title")
    assert len(history) == 5
    assert history.cursor == 4
    assert history.entries[0].snapshot.title == "t5"
    undos = 0
    while history.undo():
        undos += 1
    assert undos == 4
    assert source.state.title == "t5"


def test_rapid_records_of_same_kind_coalesce():
    source = StateHolder()
    source.state.cards.append(make_card("A", x=0))
    history = _history(source, clock=FakeClock(step=0.1))
    for x in (10, 20, 30):
        source.state.cards[0].x = x
        history.record("move")
    assert len(history) == 2
    assert history.entries[-1].snapshot.cards[0].x == 30
    history.undo()
    assert source.state.cards[0].x == 0


def test_different_kinds_do_not_coalesce():
    source = StateHolder()
    history = _history(source, clock=FakeClock(step=0.1))
    source.state.title = "a"
    history.record("title")
    source.state.cards.append(make_card("A"))
    history.record("add")
    assert len(history) == 3


def test_burst_returning_to_previous_state_drops_entry():
    source = StateHolder()
    source.state.cards.append(make_card("A", x=0))
    history = _history(source, clock=FakeClock(step=0.1))
    source.state.cards[0].x = 5
    history.record("move")
    source.state.cards[0].x = 0
    history.record("move")
    assert len(history) == 1


def test_forced_record_pushes_even_when_unchanged():
    source = StateHolder()
    history = _history(source, clock=FakeClock(step=0.1))
    assert history.record("load", force=True)
    assert len(history) == 2
    # A forced entry never absorbs the next edit.
    source.state.title = "x"
    history.record("load")
    assert len(history) == 3


def test_amend_rewrites_current_entry_in_place():
    source = StateHolder()
    source.state.cards.append(make_card("A", width=220, height=146))
    history = _history(source)
    source.state.cards[0].height = 180
    assert history.amend()
    assert len(history) == 1
    assert history.current().kind == "init"
    assert history.current().snapshot.cards[0].height == 180


def test_restore_guard_suppresses_history_until_deferred_work_finishes():
    source = StateHolder(defer=True)
    history = _history(source)
    source.state.title = "changed"
    history.record("title")

    assert history.undo()
    assert history.restoring
    source.state.title = "during restore"
    assert not history.record("title")
    assert not history.undo()
    assert not history.can_redo

    source.completions.pop()()
    assert not history.restoring
    assert history.can_redo


def test_guard_completion_is_idempotent_and_fires_release_callbacks():
    guard = RestoreGuard()
    released = []
    with guard:
        done_a = guard.defer()
        done_b = guard.defer()
        guard.on_release(lambda: released.append(True))
    assert guard.pending == 2
    done_a()
    done_a()
    assert guard.active
    done_b()
    assert not guard.active
    assert released == [True]


def test_corrupt_entry_is_rejected_before_touching_state():
    source = StateHolder()
    source.state.cards.append(make_card("A", x=1))
    history = _history(source)
    bad = Snapshot(cards=(make_card("A", x=math.nan),), wall=source.state.wall.copy(), title="bad")
    with pytest.raises(ValidationError):
        history.apply(bad)
    assert source.state.cards[0].x == 1
    assert source.state.title == "Untitled"


def test_validate_snapshot_reports_duplicates_and_small_sizes():
    snap = Snapshot(
        cards=(make_card("A"), make_card("A", width=10)),
        wall=EditorState().wall,
        title="t",
    )
    with pytest.raises(ValidationError) as info:
        validate_snapshot(snap)
    message = str(info.value)
    assert "duplicate id A" in message
    assert "width below minimum" in message


def test_step_out_of_bounds_raises():
    history = _history()
    with pytest.raises(StateConsistencyError):
        history.step(-1)
    with pytest.raises(StateConsistencyError):
        history.step(1)


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        History(StateHolder(), capacity=0)
