from __future__ import annotations

import random

import pytest

from core.services.interfaces import PhotoRef
from infrastructure.photo_catalog import CsvPhotoCatalog


def _write_csv(path, rows):
    path.write_text("\n".join(rows) + "\n", encoding="utf-8")
    return path


def test_load_skips_incomplete_rows(tmp_path):
    csv_path = _write_csv(
        tmp_path / "photos.csv",
        [
            "Link,Photographer,Notes",
            "https://example.com/1.jpg,Ann,",
            ",Bob,missing link",
            "https://example.com/3.jpg,,missing name",
            " https://example.com/4.jpg , Cy ,",
        ],
    )
    catalog = CsvPhotoCatalog()
    assert catalog.load(csv_path) == 2
    assert catalog.photos == [
        PhotoRef("https://example.com/1.jpg", "Ann"),
        PhotoRef("https://example.com/4.jpg", "Cy"),
    ]


def test_load_requires_headers(tmp_path):
    csv_path = _write_csv(tmp_path / "bad.csv", ["url,name", "a,b"])
    with pytest.raises(ValueError):
        CsvPhotoCatalog().load(csv_path)


def test_draw_never_repeats_until_reset():
    catalog = CsvPhotoCatalog(rng=random.Random(7))
    for i in range(5):
        catalog.add(PhotoRef(f"https://example.com/{i}.jpg", "P"))
    first = catalog.draw(3)
    second = catalog.draw(3)
    assert len(first) == 3
    assert len(second) == 2
    assert {p.src for p in first}.isdisjoint({p.src for p in second})
    assert catalog.remaining == 0
    assert catalog.draw(1) == []
    catalog.reset()
    assert catalog.remaining == 5
