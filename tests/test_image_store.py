from __future__ import annotations

import io

from PIL import Image
import pytest

from core.errors import ResourceResolutionError, ValidationError
from infrastructure.image_store import LocalImageStore
from infrastructure.settings import JsonSettings


def _jpeg_bytes(size, orientation=None) -> bytes:
    buf = io.BytesIO()
    im = Image.new("RGB", size, (10, 120, 200))
    if orientation is None:
        im.save(buf, format="JPEG")
    else:
        exif = Image.Exif()
        exif[274] = orientation
        im.save(buf, format="JPEG", exif=exif.tobytes())
    return buf.getvalue()


def test_store_is_content_addressed(tmp_path):
    store = LocalImageStore(tmp_path)
    data = _jpeg_bytes((300, 200))
    ref = store.store(data)
    assert ref.startswith("local:")
    assert store.store(data) == ref
    assert len(list(tmp_path.iterdir())) == 1
    assert store.contains(ref)
    assert store.resolve(ref).endswith(".jpg")


def test_natural_size_caps_and_honours_exif_rotation(tmp_path):
    store = LocalImageStore(tmp_path)
    big = store.store(_jpeg_bytes((2000, 1000)))
    assert store.natural_size(big) == (1000, 500)
    rotated = store.store(_jpeg_bytes((300, 200), orientation=6))
    assert store.natural_size(rotated) == (200, 300)


def test_natural_size_survives_a_fresh_store(tmp_path):
    ref = LocalImageStore(tmp_path).store(_jpeg_bytes((640, 480)))
    assert LocalImageStore(tmp_path).natural_size(ref) == (640, 480)


def test_rejects_non_images(tmp_path):
    store = LocalImageStore(tmp_path)
    with pytest.raises(ValidationError):
        store.store(b"plain text")
    with pytest.raises(ValidationError):
        store.store(b"")


def test_resolve_passes_urls_and_rejects_unknown_locals(tmp_path):
    store = LocalImageStore(tmp_path)
    assert store.resolve("https://example.com/a.jpg") == "https://example.com/a.jpg"
    with pytest.raises(ResourceResolutionError):
        store.resolve("local:0123abcd")
    with pytest.raises(ResourceResolutionError):
        store.resolve("local:not-hex")
    assert store.natural_size("https://example.com/a.jpg") is None
    assert not store.contains("local:0123abcd")


def test_root_from_settings(tmp_path):
    settings = JsonSettings(data={"image_store": {"dir": str(tmp_path / "blobs")}})
    store = LocalImageStore(settings=settings)
    assert store.root == tmp_path / "blobs"
    assert store.root.is_dir()
