from __future__ import annotations

import shutil
from io import BytesIO

import pytest

Image = pytest.importorskip("PIL.Image")
ImageDraw = pytest.importorskip("PIL.ImageDraw")
ImageFont = pytest.importorskip("PIL.ImageFont")
pytest.importorskip("pytesseract")

from coupon_service.field_extractors import extract_fields  # noqa: E402
from coupon_service.ocr_extract import recognize  # noqa: E402

pytestmark = pytest.mark.skipif(
    shutil.which("tesseract") is None,
    reason="tesseract binary not available",
)


def test_recognize_coupon_image_smoke() -> None:
    """Run a rendered coupon through Tesseract and the field extractor."""

    font = ImageFont.load_default(size=48)
    image = Image.new("L", (900, 220), color=255)
    draw = ImageDraw.Draw(image)
    draw.text((30, 30), "CODE: SAVE2024", fill=0, font=font)
    draw.text((30, 120), "INR 500 OFF", fill=0, font=font)
    buffer = BytesIO()
    image.save(buffer, format="PNG")

    result = recognize(buffer.getvalue(), engine="local", language="eng")

    assert result.progress == 1.0
    assert "500" in result.text
    assert extract_fields(result.text).amount_display == "₹500"
