from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Iterator

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from coupon_service.coupon_store import MemoryCouponStore  # noqa: E402
from coupon_service.settings import Settings  # noqa: E402


def _ticking_clock(start: datetime) -> Callable[[], datetime]:
    state = {"now": start}

    def clock() -> datetime:
        state["now"] = state["now"] + timedelta(seconds=1)
        return state["now"]

    return clock


@pytest.fixture
def store() -> MemoryCouponStore:
    return MemoryCouponStore(clock=_ticking_clock(datetime(2025, 1, 1, tzinfo=timezone.utc)))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        storage_backend="memory",
        bubble_api_base=None,
        bubble_api_key=None,
        ocr_engine="local",
        ocr_language="eng",
        admin_token=None,
        idempotency_ttl_seconds=600,
    )


@pytest.fixture
def bubble_settings() -> Settings:
    return Settings(
        storage_backend="bubble",
        bubble_api_base="https://example.com/version-test/api/1.1",
        bubble_api_key="test-key",
        ocr_engine="local",
        ocr_language="eng",
        admin_token=None,
        idempotency_ttl_seconds=600,
    )


@pytest.fixture(autouse=True)
def reset_service_state() -> Iterator[None]:
    from coupon_service.main import service_state

    service_state.reset()
    yield
    service_state.reset()
