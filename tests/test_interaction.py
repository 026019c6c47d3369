from __future__ import annotations

import pytest

from app.viewmodels.editor_vm import EditorVM
from conftest import make_card
from core.models import EditorState
from core.services.interaction import GestureState

ROW_H = 220 / 1.5


@pytest.fixture
def vm(clock, rng):
    state = EditorState(viewport_width=800, viewport_height=900)
    editor = EditorVM(state=state, clock=clock, rng=rng)
    for card_id in "ABCDE":
        editor.registry.add(make_card(card_id))
    editor.history.reset("init")
    return editor


def _center(vm, card_id):
    return vm.registry.get(card_id).center


def test_grid_slide_reorders_and_records_sort(vm):
    vm.toggle_grid()
    entries_before = len(vm.history)
    interaction = vm.interaction

    start = _center(vm, "C")
    assert interaction.pointer_down_card("C", start)
    assert interaction.gesture_state is GestureState.SLIDING
    target = (50 + 110, 150 + ROW_H / 2)
    interaction.pointer_move(target)
    assert vm.registry.ids() == ["C", "A", "B", "D", "E"]
    assert interaction.pointer_up(target) == "sort"

    assert len(vm.history) == entries_before + 1
    assert vm.history.current().kind == "sort"
    expected = vm.grid.pack(vm.registry.cards, 800, 800)
    for slot in expected.slots:
        card = vm.registry.get(slot.card_id)
        assert (card.x, card.y) == pytest.approx((slot.x, slot.y))
        assert card.grid_index == slot.index

    assert vm.undo()
    assert vm.registry.ids() == ["A", "B", "C", "D", "E"]


def test_free_drag_moves_every_selected_card(vm):
    vm.registry.get("A").x, vm.registry.get("A").y = 100, 300
    vm.registry.get("B").x, vm.registry.get("B").y = 400, 300
    vm.history.reset("init")
    vm.select(["A", "B"])

    interaction = vm.interaction
    assert interaction.pointer_down_card("A", (110, 310))
    assert interaction.gesture_state is GestureState.DRAGGING
    assert interaction.pointer_up((160, 330)) == "move"
    assert (vm.registry.get("A").x, vm.registry.get("A").y) == (150, 320)
    assert (vm.registry.get("B").x, vm.registry.get("B").y) == (450, 320)
    assert len(vm.history) == 2


def test_press_without_motion_records_nothing(vm):
    interaction = vm.interaction
    point = _center(vm, "B")
    interaction.pointer_down_card("B", point)
    assert interaction.pointer_up(point) is None
    assert len(vm.history) == 1


def test_cancel_restores_pre_gesture_state(vm):
    card = vm.registry.get("D")
    card.x, card.y = 200, 200
    vm.history.reset("init")
    interaction = vm.interaction
    interaction.pointer_down_card("D", (210, 210))
    interaction.pointer_move((500, 600))
    assert (card.x, card.y) == (490, 590)

    assert interaction.cancel()
    restored = vm.registry.get("D")
    assert (restored.x, restored.y) == (200, 200)
    assert restored.selected
    assert not interaction.active
    assert len(vm.history) == 1


def test_resize_commits_and_marks_card_sized(vm):
    card = vm.registry.get("A")
    card.x, card.y, card.width, card.height = 100, 100, 300, 200
    card.aspect_ratio = 1.5
    vm.history.reset("init")
    interaction = vm.interaction
    assert interaction.pointer_down_handle("A", "se", (400, 300))
    assert interaction.pointer_up((400, 340)) == "resize"
    resized = vm.registry.get("A")
    assert resized.sized
    assert resized.width == pytest.approx(360)
    assert resized.height == pytest.approx(240)


def test_locked_grid_refuses_resize_and_grid_refuses_rotate(vm):
    vm.toggle_lock()
    assert vm.state.settings.grid_mode
    assert not vm.interaction.pointer_down_handle("A", "se", _center(vm, "A"))
    assert not vm.interaction.pointer_down_rotate("A", _center(vm, "A"))


def test_rotate_records_rotate(vm):
    card = vm.registry.get("B")
    card.x, card.y, card.width, card.height = 100, 100, 200, 100
    vm.history.reset("init")
    interaction = vm.interaction
    assert interaction.pointer_down_rotate("B", (300, 150))
    assert interaction.pointer_up((200, 250)) == "rotate"
    assert vm.registry.get("B").rotation == pytest.approx(90)


def test_marquee_selects_intersecting_cards(vm):
    for i, card in enumerate(vm.registry.cards):
        card.x, card.y = i * 300, 100
    interaction = vm.interaction
    assert interaction.pointer_down_background((0, 0))
    interaction.pointer_move((350, 150))
    assert interaction.pointer_up() is None
    assert vm.registry.selected_ids() == ["A", "B"]
    assert len(vm.history) == 1


def test_second_press_during_gesture_is_ignored(vm):
    interaction = vm.interaction
    assert interaction.pointer_down_card("A", _center(vm, "A"))
    assert not interaction.pointer_down_card("B", _center(vm, "B"))


def test_marquee_shrinks_and_keeps_additive_base(vm):
    for i, card in enumerate(vm.registry.cards):
        card.x, card.y = i * 300, 100
    interaction = vm.interaction
    assert interaction.pointer_down_background((0, 0))
    interaction.pointer_move((350, 150))
    interaction.pointer_move((10, 150))
    interaction.pointer_up()
    assert vm.registry.selected_ids() == ["A"]

    assert interaction.pointer_down_background((650, 150), additive=True)
    interaction.pointer_move((700, 160))
    interaction.pointer_up()
    assert vm.registry.selected_ids() == ["A", "C"]
