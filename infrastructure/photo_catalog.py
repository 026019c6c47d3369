"""CSV photo catalog feeding the "add photos" command.

The catalog is a published spreadsheet export with at least `Link` and
`Photographer` columns. Photos are handed out in random order without
repetition until the catalog is reset.
"""

from __future__ import annotations

from collections.abc import Iterator
import csv
from pathlib import Path
import random

from loguru import logger

from core.services.interfaces import PhotoRef

CSV_HEADERS = ["Link", "Photographer"]


class CsvPhotoCatalog:
    """Load catalog rows from CSV and draw unique random photos."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self._photos: list[PhotoRef] = []
        self._used: set[int] = set()

    @property
    def photos(self) -> list[PhotoRef]:
        return list(self._photos)

    @property
    def remaining(self) -> int:
        return len(self._photos) - len(self._used)

    def load(self, csv_path: str | Path) -> int:
        """Replace the catalog with rows from `csv_path`; returns the row count kept."""
        self._photos = list(self._read(Path(csv_path)))
        self._used.clear()
        logger.info("Photo catalog loaded: {} photos from {}", len(self._photos), csv_path)
        return len(self._photos)

    def _read(self, path: Path) -> Iterator[PhotoRef]:
        with path.open("r", encoding="utf-8", newline="") as f:
            reader = csv.DictReader(f)
            missing = [h for h in CSV_HEADERS if h not in (reader.fieldnames or [])]
            if missing:
                raise ValueError(f"CSV missing required headers: {missing}")

            for row in reader:
                link = (row.get("Link") or "").strip()
                photographer = (row.get("Photographer") or "").strip()
                # Rows without both fields are incomplete entries in the sheet.
                if not link or not photographer:
                    continue
                yield PhotoRef(src=link, photographer=photographer)

    def add(self, photo: PhotoRef) -> None:
        self._photos.append(photo)

    def draw(self, count: int) -> list[PhotoRef]:
        """Return up to `count` photos that were not drawn before."""
        available = [i for i in range(len(self._photos)) if i not in self._used]
        selected: list[PhotoRef] = []
        for _ in range(max(0, count)):
            if not available:
                break
            chosen = available.pop(self._rng.randrange(len(available)))
            self._used.add(chosen)
            selected.append(self._photos[chosen])
        if len(selected) < count:
            logger.info("Photo catalog exhausted: {} of {} requested", len(selected), count)
        return selected

    def reset(self) -> None:
        """Make every photo available again."""
        self._used.clear()
