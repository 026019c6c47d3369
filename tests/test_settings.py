from __future__ import annotations

import json

import pytest

from infrastructure.settings import JsonSettings


def test_missing_file_yields_defaults(tmp_path):
    settings = JsonSettings(tmp_path / "missing.json")
    assert settings.get_int("history.capacity", 0) == 50
    assert settings.get_float("history.coalesce_seconds", 0.0) == 0.25
    assert settings.get("wall.default_unit") == "ft"
    assert settings.get("no.such.key", "fallback") == "fallback"


def test_file_values_override_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"history": {"capacity": 10}, "grid": {"gutter": 5}}), encoding="utf-8")
    settings = JsonSettings(path)
    assert settings.get_int("history.capacity", 50) == 10
    assert settings.get_float("history.coalesce_seconds", 0.0) == 0.25
    assert settings.get_float("grid.gutter", 20) == 5
    assert settings.get_float("grid.margin", 0) == 50


def test_bad_numbers_fall_back(tmp_path):
    settings = JsonSettings(data={"grid": {"gutter": "wide", "margin": float("inf")}})
    assert settings.get_float("grid.gutter", 20.0) == 20.0
    assert settings.get_float("grid.margin", 50.0) == 50.0


def test_non_object_root_is_rejected(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        JsonSettings(path)
