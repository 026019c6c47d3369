from __future__ import annotations

import copy
from datetime import datetime, timezone
import json

import pytest

from conftest import make_card
from core.errors import LayoutParseError, ValidationError
from core.models import EditorState, FrameSpec, HangHeight, Wall
from infrastructure import layout_codec

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _state() -> EditorState:
    state = EditorState(title="Living Room")
    state.cards.extend(
        [
            make_card("a1", x=12.5, y=300.25, rotation=15.0, width=240.0, height=160.0, sized=True, z_index=10003),
            make_card(
                "b2",
                src="local:abc123",
                photographer="Jo",
                x=400,
                y=120,
                aspect_ratio=0.75,
                width=165.0,
                height=220.0,
                frame=FrameSpec(enabled=True, matte=2.0, frame=1.0, unit="in", color="white"),
                grid_index=1,
            ),
        ]
    )
    state.wall = Wall(width=4, height=3, unit="m", visible=True, scale=60.5, hang_height=HangHeight(57, "in"))
    state.settings.grid_locked = True
    return state


def test_serialize_writes_versioned_document():
    doc = layout_codec.serialize(_state(), NOW)
    assert doc["version"] == 2
    assert doc["documentTitle"] == "Living Room"
    assert doc["timestamp"] == NOW.isoformat()
    assert doc["photos"][1]["frame"]["color"] == "white"
    assert doc["wall"]["hangHeight"] == {"value": 57, "unit": "in", "enabled": True}
    json.dumps(doc)


def test_round_trip_preserves_cards_wall_and_settings():
    state = _state()
    decoded = layout_codec.deserialize(json.loads(json.dumps(layout_codec.serialize(state, NOW))))
    assert decoded.migrated_from is None
    assert decoded.title == state.title
    assert decoded.wall == state.wall
    assert decoded.settings.grid_locked is True
    for original, restored in zip(state.cards, decoded.cards):
        assert restored.id == original.id
        assert restored.src == original.src
        for name in ("x", "y", "rotation", "width", "height", "aspect_ratio"):
            assert getattr(restored, name) == pytest.approx(getattr(original, name), abs=1e-6)
        assert restored.z_index == original.z_index
        assert restored.frame == original.frame
        assert restored.grid_index == original.grid_index


def test_unknown_version_is_rejected():
    doc = layout_codec.serialize(_state(), NOW)
    doc["version"] = 7
    with pytest.raises(LayoutParseError, match="unsupported document version 7"):
        layout_codec.deserialize(doc)


def test_missing_version_without_legacy_cards_is_rejected():
    with pytest.raises(LayoutParseError):
        layout_codec.deserialize({"photos": []})


def test_non_object_root_is_rejected():
    with pytest.raises(LayoutParseError):
        layout_codec.deserialize([1, 2, 3])


def test_every_problem_is_reported():
    doc = layout_codec.serialize(_state(), NOW)
    broken = copy.deepcopy(doc)
    broken["photos"][0]["x"] = "left"
    broken["photos"][1]["src"] = ""
    broken["photos"].append(copy.deepcopy(doc["photos"][0]))
    broken["wall"]["width"] = -3
    with pytest.raises(LayoutParseError) as info:
        layout_codec.deserialize(broken)
    problems = info.value.problems
    assert any("photos[0].x" in p for p in problems)
    assert any("photos[1].src" in p for p in problems)
    assert any("duplicates a1" in p for p in problems)
    assert any("wall dimensions" in p for p in problems)
    assert isinstance(info.value, ValidationError)


def test_small_sizes_are_clamped_not_rejected():
    doc = layout_codec.serialize(_state(), NOW)
    doc["photos"][0]["width"] = 12
    decoded = layout_codec.deserialize(doc)
    assert decoded.cards[0].width == 50


def test_empty_layout_is_valid():
    decoded = layout_codec.deserialize({"version": 2, "photos": []})
    assert decoded.cards == []
    assert decoded.wall.visible is False
    assert decoded.title == "Untitled"


def test_v1_document_is_migrated():
    legacy = {
        "documentTitle": "Old",
        "cards": [
            {
                "id": "c1",
                "src": "https://example.com/p.jpg",
                "photographer": "Ann",
                "left": "120.5px",
                "top": "80px",
                "width": "220px",
                "height": "146.67px",
                "rotation": 10,
                "zIndex": "10004",
                "aspectRatio": 1.5,
                "isFramedUpload": True,
                "matteValue": 1,
                "frameValue": 0.5,
                "frameUnit": "cm",
                "frameColor": "black",
            }
        ],
        "wall": {"width": 10, "height": 8, "unit": "ft", "visible": True, "scale": 40},
        "hangHeight": {"value": 60, "unit": "in", "enabled": True},
    }
    decoded = layout_codec.deserialize(legacy)
    assert decoded.migrated_from == 1
    card = decoded.cards[0]
    assert (card.x, card.y, card.width) == (120.5, 80.0, 220.0)
    assert card.sized is True
    assert card.z_index == 10004
    assert card.frame == FrameSpec(enabled=True, matte=1, frame=0.5, unit="cm", color="black")
    assert decoded.wall.hang_height == HangHeight(60, "in", True)
    assert decoded.title == "Old"


def test_reference_validation():
    assert layout_codec.is_valid_reference("https://x/y.jpg")
    assert layout_codec.is_valid_reference("local:abc")
    assert not layout_codec.is_valid_reference("local:")
    assert not layout_codec.is_valid_reference("ftp://x")
    assert not layout_codec.is_valid_reference(None)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("My Wall!", "My Wall.sequence"),
        ("plan.sequence", "plan.sequence"),
        ("***", "sequence-table.sequence"),
        (None, "sequence-table.sequence"),
    ],
)
def test_sanitize_file_name(name, expected):
    assert layout_codec.sanitize_file_name(name) == expected


def test_file_round_trip(tmp_path):
    doc = layout_codec.serialize(_state(), NOW)
    written = layout_codec.write_layout_file(tmp_path / "living room?", doc)
    assert written.name == "living room.sequence"
    assert layout_codec.read_layout_file(written) == doc


def test_reading_invalid_json_raises_parse_error(tmp_path):
    target = tmp_path / "broken.sequence"
    target.write_text("{not json", encoding="utf-8")
    with pytest.raises(LayoutParseError):
        layout_codec.read_layout_file(target)


def test_share_token_round_trip_and_rejects_garbage():
    doc = layout_codec.serialize(_state(), NOW)
    assert layout_codec.from_share_token(layout_codec.to_share_token(doc)) == doc
    with pytest.raises(ValidationError):
        layout_codec.from_share_token("%%%not-base64")


def test_unknown_hang_height_unit_is_rejected():
    doc = layout_codec.serialize(_state(), NOW)
    doc["wall"]["hangHeight"]["unit"] = "parsec"
    with pytest.raises(LayoutParseError) as info:
        layout_codec.deserialize(doc)
    assert any("hangHeight.unit" in p for p in info.value.problems)


def test_unknown_measurement_unit_is_rejected():
    doc = layout_codec.serialize(_state(), NOW)
    doc["settings"]["measurementUnit"] = "furlong"
    with pytest.raises(LayoutParseError) as info:
        layout_codec.deserialize(doc)
    assert any("measurementUnit" in p for p in info.value.problems)


def test_dimension_settings_survive_round_trip():
    state = _state()
    state.settings.measurement_unit = "mm"
    state.settings.show_dimensions = True
    decoded = layout_codec.deserialize(layout_codec.serialize(state, NOW))
    assert decoded.settings.measurement_unit == "mm"
    assert decoded.settings.show_dimensions is True


def test_small_sizes_keep_their_aspect_ratio_when_clamped():
    doc = layout_codec.serialize(_state(), NOW)
    doc["photos"][0]["width"] = 220
    doc["photos"][0]["height"] = 44
    card = layout_codec.deserialize(doc).cards[0]
    assert (card.width, card.height) == pytest.approx((250.0, 50.0))


def test_non_positive_sizes_are_rejected():
    doc = layout_codec.serialize(_state(), NOW)
    doc["photos"][0]["width"] = 0
    with pytest.raises(LayoutParseError):
        layout_codec.deserialize(doc)
