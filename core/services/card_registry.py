"""Ordered collection of cards with z-order and selection bookkeeping."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from loguru import logger

from core.errors import ValidationError
from core.models import Z_INDEX_BASE, Card
from core.services.geometry import rects_intersect


class CardRegistry:
    """Owns the ordered card list of an `EditorState`.

    The registry mutates the list it is given in place, so every engine holding
    the same `EditorState` observes the same order. Z indices come from a
    monotonic counter and are never reused while the registry lives.
    """

    def __init__(self, cards: list[Card] | None = None) -> None:
        self._cards: list[Card] = cards if cards is not None else []
        self._z_counter = Z_INDEX_BASE
        self._bump_z_counter()

    @property
    def cards(self) -> list[Card]:
        return self._cards

    @property
    def z_counter(self) -> int:
        """The last z index handed out."""
        return self._z_counter

    def __iter__(self) -> Iterator[Card]:
        return iter(self._cards)

    def __len__(self) -> int:
        return len(self._cards)

    def __contains__(self, card_id: object) -> bool:
        return any(c.id == card_id for c in self._cards)

    def ids(self) -> list[str]:
        return [c.id for c in self._cards]

    def get(self, card_id: str) -> Card:
        """Return the card with `card_id`.

        Raises:
            KeyError: If no such card exists.
        """
        for card in self._cards:
            if card.id == card_id:
                return card
        raise KeyError(card_id)

    def index_of(self, card_id: str) -> int:
        for i, card in enumerate(self._cards):
            if card.id == card_id:
                return i
        raise KeyError(card_id)

    def next_z(self) -> int:
        self._z_counter += 1
        return self._z_counter

    def add(self, card: Card, index: int | None = None) -> Card:
        """Insert `card` (at the end by default) and give it the next z index."""
        if card.id in self:
            raise ValidationError(f"Duplicate card id: {card.id}")
        card.z_index = self.next_z()
        if index is None:
            self._cards.append(card)
        else:
            self._cards.insert(index, card)
        return card

    def remove(self, card_id: str) -> Card:
        idx = self.index_of(card_id)
        return self._cards.pop(idx)

    def clear(self) -> None:
        self._cards.clear()

    def replace_all(self, cards: Iterable[Card]) -> None:
        """Swap in a new card list wholesale, keeping z indices as given.

        Used by restore and load. The z counter moves past every restored index
        so that later cards always stack on top.
        """
        new_cards = list(cards)
        seen: set[str] = set()
        for card in new_cards:
            if card.id in seen:
                raise ValidationError(f"Duplicate card id: {card.id}")
            seen.add(card.id)
        self._cards[:] = new_cards
        self._bump_z_counter()

    def move(self, card_id: str, index: int) -> None:
        """Move a card to `index` within the order (clamped to the valid range)."""
        card = self.remove(card_id)
        index = max(0, min(index, len(self._cards)))
        self._cards.insert(index, card)

    def reorder(self, ordered_ids: list[str]) -> None:
        """Reorder to match `ordered_ids`, which must be a permutation of the ids."""
        if sorted(ordered_ids) != sorted(self.ids()):
            raise ValidationError("Reorder ids must be a permutation of the registry")
        by_id = {c.id: c for c in self._cards}
        self._cards[:] = [by_id[i] for i in ordered_ids]

    def bring_to_front(self, card_id: str) -> None:
        self.get(card_id).z_index = self.next_z()

    # Selection
    def selected(self) -> list[Card]:
        return [c for c in self._cards if c.selected]

    def selected_ids(self) -> list[str]:
        return [c.id for c in self._cards if c.selected]

    def select(self, card_ids: Iterable[str], additive: bool = False) -> None:
        wanted = set(card_ids)
        for card in self._cards:
            if card.id in wanted:
                card.selected = True
            elif not additive:
                card.selected = False

    def select_all(self) -> None:
        for card in self._cards:
            card.selected = True

    def clear_selection(self) -> None:
        for card in self._cards:
            card.selected = False

    def select_in_rect(self, rect: tuple[float, float, float, float], additive: bool = False) -> list[str]:
        """Marquee selection: select every card whose bounds touch `rect`.

        Returns:
            Ids of the cards selected after the call.
        """
        for card in self._cards:
            if rects_intersect(card.bounds(), rect):
                card.selected = True
            elif not additive:
                card.selected = False
        return self.selected_ids()

    def _bump_z_counter(self) -> None:
        top = max((c.z_index for c in self._cards), default=Z_INDEX_BASE)
        if top > self._z_counter:
            logger.debug("Z counter advanced from {} to {}", self._z_counter, top)
            self._z_counter = top
