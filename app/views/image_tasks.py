from __future__ import annotations

from typing import Any

from PySide6.QtCore import QByteArray, QObject, QRunnable, QThreadPool, QUrl, Qt
from PySide6.QtGui import QImage, QImageReader
from PySide6.QtNetwork import QNetworkAccessManager, QNetworkReply, QNetworkRequest
from loguru import logger

# Decoded card images are capped on the longer side.
MAX_DECODE_SIDE = 1000


def _decode_file(path: str) -> QImage | None:
    reader = QImageReader(path)
    reader.setAutoTransform(True)
    img = reader.read()
    if img.isNull():
        logger.warning("Decode failed for {}: {}", path, reader.errorString() or "null image")
        return None
    if max(img.width(), img.height()) > MAX_DECODE_SIDE:
        img = img.scaled(
            MAX_DECODE_SIDE, MAX_DECODE_SIDE, Qt.KeepAspectRatio, Qt.SmoothTransformation
        )
    return img


class _FileTask(QRunnable):
    """QRunnable decoding a local image file.

    Emits `receiver.imageLoaded(token, src, image)` upon completion. The
    receiver is expected to own a Qt `Signal(str, str, object)` named
    `imageLoaded`.
    """

    def __init__(self, *, path: str, src: str, receiver: QObject, token: str) -> None:
        super().__init__()
        self._path = path
        self._src = src
        self._receiver = receiver
        self._token = token

    def run(self) -> None:  # type: ignore[override]
        try:
            img = _decode_file(self._path)
        except Exception as ex:  # pragma: no cover - GUI background task
            logger.error("Image task failed: {}", ex)
            img = None
        self._receiver.imageLoaded.emit(self._token, self._src, img)  # type: ignore[attr-defined]


class ImageTaskRunner:
    """Loads card images off the UI thread.

    Local references are resolved through the image store and decoded on the
    global thread pool; http(s) sources are fetched with a shared
    `QNetworkAccessManager`. Tokens are card ids.
    """

    def __init__(self, *, image_store: Any, receiver: QObject) -> None:
        self._store = image_store
        self._receiver = receiver
        self._pool = QThreadPool.globalInstance()
        self._net = QNetworkAccessManager(receiver)

    def request(self, token: str, src: str) -> None:
        if src.startswith(("http://", "https://")):
            self._fetch(token, src)
            return
        if src.startswith("data:"):
            self._decode_inline(token, src)
            return
        path = src
        if self._store is not None:
            path = self._store.resolve(src)
        if path.startswith("file://"):
            path = QUrl(path).toLocalFile()
        self._pool.start(_FileTask(path=path, src=src, receiver=self._receiver, token=token))

    def _decode_inline(self, token: str, src: str) -> None:
        _, _, payload = src.partition(",")
        img = QImage()
        if not img.loadFromData(QByteArray.fromBase64(payload.encode("ascii", errors="ignore"))):
            logger.warning("Inline image for card {} could not be decoded", token)
            img = None
        self._receiver.imageLoaded.emit(token, src, img)  # type: ignore[attr-defined]

    def _fetch(self, token: str, src: str) -> None:
        reply = self._net.get(QNetworkRequest(QUrl(src)))

        def _finished() -> None:
            img: QImage | None = None
            if reply.error() == QNetworkReply.NetworkError.NoError:
                loaded = QImage()
                if loaded.loadFromData(bytes(reply.readAll())):
                    img = loaded
            else:
                logger.warning("Download failed for {}: {}", src, reply.errorString())
            reply.deleteLater()
            self._receiver.imageLoaded.emit(token, src, img)  # type: ignore[attr-defined]

        reply.finished.connect(_finished)
