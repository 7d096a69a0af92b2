"""FastAPI router definitions for the coupon scanner service."""
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, UploadFile, status
from pydantic import BaseModel

from . import aggregation
from .bubble_client import BubbleAPIError
from .coupon_store import CouponStore, CouponStoreError, build_store
from .field_extractors import extract_fields
from .ocr_extract import ImageFetchError, OCRDecodeError, OCRServiceError, recognize
from .security import IdempotencyStore, IdempotentResponse, verify_admin_token
from .settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

app = FastAPI(title="Coupon Scanner Service")

MAX_UPLOAD_SIZE = 10 * 1024 * 1024
MAX_TEXT_LENGTH = 20_000
ALLOWED_MIME_TYPES = {
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/webp",
    "image/tiff",
}


class ExtractRequest(BaseModel):
    text: str = ""


class ExtractResponse(BaseModel):
    code: str
    amount: str


class ScanResponse(ExtractResponse):
    raw_text: str


class AddCouponRequest(BaseModel):
    code: Optional[str] = None
    amount: Optional[str] = None
    raw_text: Optional[str] = ""


class AddCouponResponse(BaseModel):
    message: str
    amount: str
    amount_value: Optional[float]
    amount_count: Optional[int]
    id: str


class StatItem(BaseModel):
    amount: str
    amount_value: Optional[float]
    count: int


class StatsResponse(BaseModel):
    items: List[StatItem]
    total_coupons: int
    total_value: float


class DeleteResponse(BaseModel):
    message: str
    remaining_count: int


class ClearResponse(BaseModel):
    message: str
    deleted_count: int


class ServiceState:
    """Lazily built, process-wide store and idempotency cache."""

    def __init__(self) -> None:
        self._store: Optional[CouponStore] = None
        self._idempotency: Optional[IdempotencyStore] = None

    def store(self, settings: Settings) -> CouponStore:
        if self._store is None:
            LOGGER.info("Using %s coupon store", settings.storage_backend)
            self._store = build_store(settings)
        return self._store

    def idempotency(self, settings: Settings) -> IdempotencyStore:
        if self._idempotency is None:
            self._idempotency = IdempotencyStore(ttl_seconds=settings.idempotency_ttl_seconds)
        return self._idempotency

    def reset(self) -> None:
        self._store = None
        self._idempotency = None


service_state = ServiceState()


def get_store(settings: Settings = Depends(get_settings)) -> CouponStore:
    return service_state.store(settings)


def get_idempotency_store(settings: Settings = Depends(get_settings)) -> IdempotencyStore:
    return service_state.idempotency(settings)


def _store_failure(exc: Exception, action: str) -> HTTPException:
    LOGGER.error("Coupon store failed to %s: %s", action, exc)
    return HTTPException(status_code=status.HTTP_424_FAILED_DEPENDENCY, detail=f"coupon_{action}_failed")


async def _read_upload(file: UploadFile) -> bytes:
    data = await file.read()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="empty_file")
    if len(data) > MAX_UPLOAD_SIZE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="file_too_large")
    if file.content_type not in ALLOWED_MIME_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="unsupported_mime")
    return data


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok"}


@app.post("/api/coupons/extract", response_model=ExtractResponse)
async def extract(payload: ExtractRequest) -> ExtractResponse:
    if len(payload.text) > MAX_TEXT_LENGTH:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="text_too_long")
    fields = extract_fields(payload.text)
    return ExtractResponse(code=fields.code, amount=fields.amount_display)


@app.post("/api/coupons/scan", response_model=ScanResponse)
async def scan(
    file: Optional[UploadFile] = File(None),
    image_url: Optional[str] = Form(None),
    settings: Settings = Depends(get_settings),
) -> ScanResponse:
    if file is not None:
        image_input = await _read_upload(file)
    elif image_url:
        image_input = image_url
    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="missing_image")

    try:
        ocr_result = recognize(image_input, engine=settings.ocr_engine, language=settings.ocr_language)
    except ImageFetchError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="image_fetch_failed") from exc
    except OCRDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="ocr_decode_failed") from exc
    except OCRServiceError as exc:
        LOGGER.exception("OCR service error: %s", exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="ocr_service_error") from exc

    fields = extract_fields(ocr_result.text)
    if not fields.code:
        LOGGER.info("No coupon code detected in scanned image")
    return ScanResponse(code=fields.code, amount=fields.amount_display, raw_text=ocr_result.text)


@app.post("/api/coupons/add", response_model=AddCouponResponse, status_code=status.HTTP_201_CREATED)
async def add_coupon(
    payload: AddCouponRequest,
    store: CouponStore = Depends(get_store),
    idempotency_store: IdempotencyStore = Depends(get_idempotency_store),
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
) -> AddCouponResponse:
    cached = idempotency_store.get(idempotency_key)
    if cached:
        LOGGER.info("Returning cached response for idempotency key %s", idempotency_key)
        return AddCouponResponse(**cached.payload)

    try:
        created = aggregation.create_coupon(store, payload.code, payload.amount, payload.raw_text)
    except aggregation.CouponValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except (CouponStoreError, BubbleAPIError) as exc:
        raise _store_failure(exc, "add") from exc

    response = {
        "message": "Coupon added",
        "amount": created.amount_display,
        "amount_value": created.amount_value,
        "amount_count": created.amount_count,
        "id": created.id,
    }
    idempotency_store.remember(idempotency_key, IdempotentResponse(coupon_id=created.id, payload=response))
    return AddCouponResponse(**response)


@app.get("/api/coupons/stats", response_model=StatsResponse)
async def stats(store: CouponStore = Depends(get_store)) -> StatsResponse:
    try:
        groups = aggregation.get_stats(store)
    except (CouponStoreError, BubbleAPIError) as exc:
        raise _store_failure(exc, "stats") from exc

    totals = aggregation.summarize(groups)
    return StatsResponse(
        items=[
            StatItem(amount=group.amount_display, amount_value=group.amount_value, count=group.count)
            for group in groups
        ],
        total_coupons=totals.total_coupons,
        total_value=totals.total_value,
    )


@app.delete("/api/coupons/delete/{amount}", response_model=DeleteResponse)
async def delete_coupon(amount: str, store: CouponStore = Depends(get_store)) -> DeleteResponse:
    try:
        remaining = aggregation.delete_one(store, amount)
    except aggregation.CouponNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except (CouponStoreError, BubbleAPIError) as exc:
        raise _store_failure(exc, "delete") from exc
    return DeleteResponse(message=f"Deleted one coupon for {amount}", remaining_count=remaining)


@app.delete("/api/coupons/clear-all", response_model=ClearResponse)
async def clear_all(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
    store: CouponStore = Depends(get_store),
) -> ClearResponse:
    verify_admin_token(authorization, settings)
    try:
        removed = aggregation.clear_all(store)
    except (CouponStoreError, BubbleAPIError) as exc:
        raise _store_failure(exc, "clear") from exc
    return ClearResponse(message=f"Deleted {removed} coupons", deleted_count=removed)


__all__ = ["app"]
