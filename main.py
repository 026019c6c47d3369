from __future__ import annotations

import sys
from pathlib import Path

from PySide6.QtWidgets import QApplication
from loguru import logger

from app.viewmodels.editor_vm import EditorVM
from app.views.main_window import MainWindow
from infrastructure.image_store import LocalImageStore
from infrastructure.logging import init_logging
from infrastructure.photo_catalog import CsvPhotoCatalog
from infrastructure.settings import JsonSettings


BASE_DIR = Path(__file__).parent


def _load_catalog(settings: JsonSettings) -> CsvPhotoCatalog:
    catalog = CsvPhotoCatalog()
    raw = settings.get("catalog.csv_path")
    csv_path = Path(raw) if isinstance(raw, str) and raw else BASE_DIR / "samples" / "photos.csv"
    if csv_path.exists():
        try:
            catalog.load(csv_path)
        except (OSError, ValueError) as ex:
            logger.error("Photo catalog could not be loaded from {}: {}", csv_path, ex)
    else:
        logger.info("No photo catalog at {}; only uploads are available", csv_path)
    return catalog


def main() -> int:
    settings = JsonSettings(BASE_DIR / "settings.json")
    init_logging(settings.get("logging.dir"), str(settings.get("logging.level", "INFO")))

    app = QApplication(sys.argv)

    catalog = _load_catalog(settings)
    store = LocalImageStore(settings=settings)
    vm = EditorVM(photo_source=catalog, image_store=store, settings=settings)
    logger.info("Image store at {} (HEIF support: {})", store.root, store.heif_available)

    win = MainWindow(vm=vm, image_store=store, settings=settings)
    win.statusBar().showMessage("Ready", 2000)
    win.show()

    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
