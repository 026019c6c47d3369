"""Content-addressed local image store for uploaded photos.

Uploads are written once under their SHA-1 digest and referred to as
`local:<digest>` from cards and saved layouts. Pillow validates uploads and
probes natural dimensions; pillow-heif adds HEIC/HEIF when installed.
"""

from __future__ import annotations

from collections import OrderedDict
import hashlib
import io
import os
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from loguru import logger

from core.errors import ResourceResolutionError, ValidationError
from core.services.geometry import fit_natural_size

try:  # pragma: no cover - optional dependency
    from pillow_heif import register_heif_opener  # type: ignore

    register_heif_opener()
    PIL_HEIF_AVAILABLE = True
except ImportError:  # pragma: no cover - optional dependency
    PIL_HEIF_AVAILABLE = False

LOCAL_PREFIX = "local:"
MAX_NATURAL_SIDE = 1000

# EXIF orientations that swap width and height
_TRANSPOSED_ORIENTATIONS = {5, 6, 7, 8}
_EXIF_ORIENTATION = 274

_EXTENSIONS = {
    "JPEG": ".jpg",
    "PNG": ".png",
    "GIF": ".gif",
    "WEBP": ".webp",
    "BMP": ".bmp",
    "TIFF": ".tif",
    "HEIF": ".heic",
}


def _ensure_dir(p: Path) -> None:
    """Create directory `p` if missing (including parents)."""
    p.mkdir(parents=True, exist_ok=True)


def _digest(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


class _LRUCache:
    def __init__(self, capacity: int) -> None:
        self._cap = max(1, int(capacity or 1))
        self._data: OrderedDict[str, tuple[int, int]] = OrderedDict()

    def get(self, key: str) -> tuple[int, int] | None:
        """Return cached size for key, moving it to the MRU position."""
        item = self._data.get(key)
        if item is None:
            return None
        self._data.move_to_end(key)
        return item

    def put(self, key: str, size: tuple[int, int]) -> None:
        """Insert or update `key`, evicting LRU entries when over capacity."""
        self._data[key] = size
        self._data.move_to_end(key)
        while len(self._data) > self._cap:
            self._data.popitem(last=False)


def _probe_size(im: Image.Image) -> tuple[int, int]:
    """Display size of an opened image, honouring EXIF rotation."""
    width, height = im.size
    try:
        orientation = im.getexif().get(_EXIF_ORIENTATION)
    except (AttributeError, OSError, ValueError):
        orientation = None
    if orientation in _TRANSPOSED_ORIENTATIONS:
        width, height = height, width
    return fit_natural_size(width, height, MAX_NATURAL_SIDE)


class LocalImageStore:
    """Stores upload bytes on disk and resolves `local:` references."""

    def __init__(self, root: str | Path | None = None, settings: object | None = None) -> None:
        """Initialize the blob directory from `root`, settings or the default."""
        if root is None and settings is not None:
            raw_dir = settings.get("image_store.dir")
            if isinstance(raw_dir, str) and raw_dir:
                root = os.path.expandvars(os.path.expanduser(raw_dir))
        if root is None:
            root = Path.home() / ".sequence-table" / "blobs"
        self._root = Path(root)
        _ensure_dir(self._root)
        self._sizes = _LRUCache(512)
        self.heif_available = bool(PIL_HEIF_AVAILABLE)

    @property
    def root(self) -> Path:
        return self._root

    def store(self, data: bytes) -> str:
        """Validate `data` as an image, persist it and return its reference.

        Raises:
            ValidationError: If Pillow cannot identify the bytes as an image.
        """
        if not data:
            raise ValidationError("Empty upload")
        try:
            with Image.open(io.BytesIO(data)) as im:
                fmt = (im.format or "").upper()
                size = _probe_size(im)
        except (UnidentifiedImageError, OSError) as ex:
            raise ValidationError(f"Upload is not a readable image: {ex}") from ex

        blob_id = _digest(data)
        ref = LOCAL_PREFIX + blob_id
        existing = self._find(blob_id)
        if existing is None:
            target = self._root / f"{blob_id}{_EXTENSIONS.get(fmt, '.img')}"
            target.write_bytes(data)
            logger.info("Stored upload {} ({} bytes, {}x{})", ref, len(data), *size)
        self._sizes.put(blob_id, size)
        return ref

    def contains(self, ref: str) -> bool:
        blob_id = self._blob_id(ref)
        return blob_id is not None and self._find(blob_id) is not None

    def resolve(self, ref: str) -> str:
        """Return a filesystem path for `local:` refs; URLs pass through.

        Raises:
            ResourceResolutionError: If a local reference has no stored blob.
        """
        blob_id = self._blob_id(ref)
        if blob_id is None:
            if not ref:
                raise ResourceResolutionError(ref, "empty reference")
            return ref
        path = self._find(blob_id)
        if path is None:
            raise ResourceResolutionError(ref)
        return str(path)

    def natural_size(self, ref: str) -> tuple[int, int] | None:
        """Natural (width, height), capped to 1000 px on the longer side."""
        blob_id = self._blob_id(ref)
        if blob_id is None:
            return None
        cached = self._sizes.get(blob_id)
        if cached is not None:
            return cached
        path = self._find(blob_id)
        if path is None:
            return None
        try:
            with Image.open(path) as im:
                size = _probe_size(im)
        except (UnidentifiedImageError, OSError) as ex:
            logger.debug("Size probe failed for {}: {}", path, ex)
            return None
        self._sizes.put(blob_id, size)
        return size

    @staticmethod
    def _blob_id(ref: str) -> str | None:
        if isinstance(ref, str) and ref.startswith(LOCAL_PREFIX):
            blob_id = ref[len(LOCAL_PREFIX) :]
            # Blob ids are hex digests; anything else cannot name a stored file.
            if blob_id and all(ch in "0123456789abcdef" for ch in blob_id.lower()):
                return blob_id.lower()
            return ""
        return None

    def _find(self, blob_id: str) -> Path | None:
        if not blob_id:
            return None
        for candidate in self._root.glob(f"{blob_id}.*"):
            if candidate.is_file():
                return candidate
        return None
