"""
Logo and barcode images for the document header.

Loading happens before layout starts and never fails the document: a missing,
slow or undecodable image resolves to ``None`` and the header is drawn without it.
"""
from __future__ import annotations

import io
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from pathlib import Path
from typing import Optional, Union

import qrcode
import requests
from PIL import Image

from document_engine.errors import AssetLoadError
from document_engine.models import ImageAsset

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, bytes]


def _read_source(source: ImageSource, timeout: float) -> bytes:
    if isinstance(source, bytes):
        return source
    text = str(source)
    if text.startswith(("http://", "https://")):
        try:
            resp = requests.get(text, timeout=timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise AssetLoadError(f"Cannot download {text}: {exc}") from exc
        return resp.content
    try:
        return Path(text).read_bytes()
    except (OSError, ValueError) as exc:
        raise AssetLoadError(f"Cannot read {text}: {exc}") from exc


def decode_image(data: bytes) -> ImageAsset:
    """Decode any Pillow-readable image and re-encode it as PNG."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            converted = img.convert("RGBA") if img.mode not in ("RGB", "RGBA", "L") else img
            out = io.BytesIO()
            converted.save(out, format="PNG")
            width, height = img.size
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise AssetLoadError(f"Cannot decode image: {exc}") from exc
    if not width or not height:
        raise AssetLoadError("Image has no size")
    return ImageAsset(data=out.getvalue(), width=width, height=height)


def _load_and_decode(source: ImageSource, timeout: float) -> ImageAsset:
    return decode_image(_read_source(source, timeout))


def load_image_asset(source: Optional[ImageSource], timeout: float = 3.0) -> Optional[ImageAsset]:
    """Load an image with a hard timeout; any failure is logged and yields ``None``."""
    if not source:
        return None

    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(_load_and_decode, source, timeout)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        logger.warning("Image %s not loaded within %.1fs, omitted.", _describe(source), timeout)
        return None
    except AssetLoadError as exc:
        logger.warning("Image %s omitted: %s", _describe(source), exc)
        return None
    finally:
        executor.shutdown(wait=False)


def build_barcode(data: str) -> Optional[ImageAsset]:
    """QR code for ``data``; ``None`` when it cannot be generated."""
    if not data:
        return None
    try:
        qr = qrcode.QRCode(box_size=4, border=1)
        qr.add_data(data)
        qr.make(fit=True)
        image = qr.make_image(fill_color="black", back_color="white")
        out = io.BytesIO()
        image.save(out, format="PNG")
        return decode_image(out.getvalue())
    except (AssetLoadError, ValueError, OSError) as exc:
        logger.warning("Barcode for %s omitted: %s", data, exc)
        return None


def _describe(source: ImageSource) -> str:
    if isinstance(source, bytes):
        return f"<{len(source)} bytes>"
    return str(source)
