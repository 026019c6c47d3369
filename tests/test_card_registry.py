from __future__ import annotations

import pytest

from conftest import make_card
from core.errors import ValidationError
from core.models import Z_INDEX_BASE
from core.services.card_registry import CardRegistry


def _registry(*ids: str) -> CardRegistry:
    registry = CardRegistry()
    for card_id in ids:
        registry.add(make_card(card_id))
    return registry


def test_add_assigns_increasing_z_and_rejects_duplicates():
    registry = _registry("A", "B")
    assert [c.z_index for c in registry] == [Z_INDEX_BASE + 1, Z_INDEX_BASE + 2]
    with pytest.raises(ValidationError):
        registry.add(make_card("A"))


def test_registry_mutates_shared_list():
    cards = []
    registry = CardRegistry(cards)
    registry.add(make_card("A"))
    assert cards[0].id == "A"
    registry.replace_all([make_card("B"), make_card("C")])
    assert [c.id for c in cards] == ["B", "C"]


def test_replace_all_moves_z_counter_past_restored_cards():
    registry = _registry("A")
    registry.replace_all([make_card("X", z_index=20000)])
    assert registry.next_z() == 20001
    with pytest.raises(ValidationError):
        registry.replace_all([make_card("D"), make_card("D")])


def test_move_and_reorder():
    registry = _registry("A", "B", "C")
    registry.move("C", 0)
    assert registry.ids() == ["C", "A", "B"]
    registry.move("C", 99)
    assert registry.ids() == ["A", "B", "C"]
    registry.reorder(["B", "C", "A"])
    assert registry.ids() == ["B", "C", "A"]
    with pytest.raises(ValidationError):
        registry.reorder(["A", "B"])


def test_bring_to_front_tops_every_other_card():
    registry = _registry("A", "B", "C")
    registry.bring_to_front("A")
    assert registry.get("A").z_index == max(c.z_index for c in registry)


def test_get_unknown_card_raises_key_error():
    with pytest.raises(KeyError):
        _registry("A").get("Z")


def test_selection_helpers():
    registry = _registry("A", "B", "C")
    registry.select(["A"])
    registry.select(["B"], additive=True)
    assert registry.selected_ids() == ["A", "B"]
    registry.select(["C"])
    assert registry.selected_ids() == ["C"]
    registry.select_all()
    assert len(registry.selected()) == 3
    registry.clear_selection()
    assert registry.selected_ids() == []


def test_select_in_rect_hits_touching_cards():
    registry = CardRegistry()
    registry.add(make_card("A", x=0, y=0, width=100, height=100))
    registry.add(make_card("B", x=300, y=0, width=100, height=100))
    assert registry.select_in_rect((50, 50, 120, 120)) == ["A"]
    assert registry.select_in_rect((290, 0, 310, 10), additive=True) == ["A", "B"]
