"""Coupon OCR helpers.

Turns an uploaded coupon photo into a single block of recognised text. The
local Tesseract backend is the default; RapidOCR can be selected through
``OCR_ENGINE`` and falls back to Tesseract when it fails. Callers may pass a
``progress`` callback that receives non-decreasing values in ``[0, 1]``.
"""
from __future__ import annotations

import base64
import binascii
import importlib.util
import logging
import re
import unicodedata
from dataclasses import dataclass
from io import BytesIO
from typing import Callable, List, Optional, Tuple, Union

import requests
from PIL import Image, UnidentifiedImageError

_PYTESSERACT_AVAILABLE = importlib.util.find_spec("pytesseract") is not None
if _PYTESSERACT_AVAILABLE:
    import pytesseract
else:  # pragma: no cover - pytesseract missing in runtime environment
    pytesseract = None  # type: ignore[assignment]

_RAPIDOCR_AVAILABLE = importlib.util.find_spec("rapidocr_onnxruntime") is not None
if _RAPIDOCR_AVAILABLE:
    from rapidocr_onnxruntime import RapidOCR  # type: ignore
else:  # pragma: no cover - rapidocr missing in runtime environment
    RapidOCR = None  # type: ignore[assignment]

_NUMPY_AVAILABLE = importlib.util.find_spec("numpy") is not None
if _NUMPY_AVAILABLE:
    import numpy as np
else:  # pragma: no cover - numpy missing in runtime environment
    np = None  # type: ignore[assignment]

LOGGER = logging.getLogger(__name__)

OCR_TIMEOUT = 30

ProgressCallback = Callable[[float], None]

_RAPIDOCR_ENGINE: Optional["RapidOCR"] = None


class ImageFetchError(RuntimeError):
    """Raised when the input image cannot be retrieved."""


class OCRServiceError(RuntimeError):
    """Raised when the OCR engine fails."""


class OCRDecodeError(RuntimeError):
    """Raised when the input or the OCR output cannot be interpreted."""


@dataclass(frozen=True)
class OCRText:
    text: str
    progress: float = 1.0


class _ProgressReporter:
    """Forward progress to a callback, never letting it move backwards."""

    def __init__(self, callback: Optional[ProgressCallback]) -> None:
        self._callback = callback
        self.value = 0.0

    def __call__(self, value: float) -> None:
        value = min(max(value, self.value), 1.0)
        self.value = value
        if self._callback is not None:
            self._callback(value)


def recognize(
    image_input: Union[str, bytes],
    *,
    engine: str = "local",
    language: str = "eng",
    progress: Optional[ProgressCallback] = None,
) -> OCRText:
    """Recognise the text printed on a coupon image.

    Parameters
    ----------
    image_input:
        Raw image bytes, an ``http(s)`` URL, or a base64 encoded payload.
    engine:
        ``"local"`` for Tesseract or ``"rapidocr"``.
    progress:
        Optional callback receiving the fraction of work completed.
    """

    report = _ProgressReporter(progress)
    report(0.0)
    binary, _ = _load_bytes(image_input)
    image = _image_from_bytes(binary)
    report(0.2)
    raw_text = _perform_ocr(image, engine=engine, language=language)
    report(0.9)

    text = raw_text.strip() if raw_text else ""
    report(1.0)
    return OCRText(text=text, progress=report.value)


def _normalise_text(text: str) -> str:
    cleaned = unicodedata.normalize("NFKC", text or "")
    cleaned = re.sub(r"[\t\f\r]+", " ", cleaned)
    cleaned = re.sub(r" {2,}", " ", cleaned)
    return cleaned.strip()


def _load_bytes(image_input: Union[str, bytes]) -> Tuple[bytes, str]:
    if isinstance(image_input, (bytes, bytearray)):
        return bytes(image_input), "bytes"

    if isinstance(image_input, str):
        trimmed = image_input.strip()
        if trimmed.startswith("http://") or trimmed.startswith("https://"):
            try:
                response = requests.get(trimmed, timeout=OCR_TIMEOUT)
                response.raise_for_status()
            except requests.RequestException as exc:  # pragma: no cover - network
                raise ImageFetchError("fetch_failed") from exc
            return response.content, trimmed

        try:
            return base64.b64decode(trimmed, validate=True), "base64"
        except (binascii.Error, ValueError) as exc:
            raise OCRDecodeError("invalid_base64") from exc

    raise OCRDecodeError("unsupported_input_type")


def _image_from_bytes(binary: bytes) -> Image.Image:
    try:
        image = Image.open(BytesIO(binary))
        image.load()
    except UnidentifiedImageError as exc:
        raise OCRDecodeError("unsupported_image_format") from exc
    except OSError as exc:
        raise OCRDecodeError("image_open_failed") from exc
    return image.convert("RGB")


def _perform_ocr(image: Image.Image, *, engine: str, language: str) -> str:
    engine = (engine or "local").strip().lower()
    if engine == "rapidocr":
        try:
            return _ocr_rapidocr(image)
        except (OCRServiceError, OCRDecodeError) as exc:
            LOGGER.warning(
                "rapidocr_failed_falling_back: %s",
                exc,
                exc_info=LOGGER.isEnabledFor(logging.DEBUG),
            )
            return _ocr_local(image, language)
    if engine == "local":
        return _ocr_local(image, language)
    raise OCRServiceError(f"unknown_ocr_engine:{engine}")


def _ocr_local(image: Image.Image, language: str) -> str:
    if not _PYTESSERACT_AVAILABLE or pytesseract is None:
        raise OCRServiceError("pytesseract_not_installed")
    try:
        return pytesseract.image_to_string(image, lang=language or "eng")
    except pytesseract.TesseractNotFoundError as exc:
        raise OCRServiceError("tesseract_not_found") from exc
    except pytesseract.TesseractError as exc:
        raise OCRServiceError(f"tesseract_error:{exc}") from exc


def _ocr_rapidocr(image: Image.Image) -> str:
    if not _RAPIDOCR_AVAILABLE or RapidOCR is None:
        raise OCRServiceError("rapidocr_not_installed")
    if not _NUMPY_AVAILABLE or np is None:
        raise OCRServiceError("rapidocr_numpy_missing")
    engine = _get_rapidocr()
    try:
        result, _ = engine(np.array(image))
    except Exception as exc:  # pragma: no cover - rapidocr runtime failure
        raise OCRServiceError("rapidocr_execution_failed") from exc
    if not result:
        raise OCRDecodeError("rapidocr_empty_result")
    texts: List[str] = []
    for entry in result:
        if not entry:
            continue
        candidate = entry[1] if isinstance(entry, (list, tuple)) and len(entry) >= 2 else entry
        if isinstance(candidate, (list, tuple)) and candidate:
            candidate = candidate[0]
        if not isinstance(candidate, str):
            continue
        normalised = _normalise_text(candidate)
        if normalised:
            texts.append(normalised)
    if not texts:
        raise OCRDecodeError("rapidocr_no_text")
    return "\n".join(texts)


def _get_rapidocr() -> "RapidOCR":
    global _RAPIDOCR_ENGINE
    if _RAPIDOCR_ENGINE is None:
        _RAPIDOCR_ENGINE = RapidOCR(det_use_cuda=False, rec_use_cuda=False, cls_use_cuda=False)
    return _RAPIDOCR_ENGINE


__all__ = [
    "ImageFetchError",
    "OCRDecodeError",
    "OCRServiceError",
    "OCRText",
    "recognize",
]
