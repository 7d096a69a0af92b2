from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from coupon_service import coupon_store
from coupon_service.coupon_store import BubbleCouponStore, CouponStoreError, MemoryCouponStore, build_store
from coupon_service.models import NewCoupon


def _coupon(display: str = "₹500", value: Optional[float] = 500.0) -> NewCoupon:
    return NewCoupon(code="SAVE2024", amount_display=display, amount_value=value, raw_text="raw")


def test_memory_store_breaks_timestamp_ties_by_insertion_order() -> None:
    frozen = datetime(2025, 1, 1, tzinfo=timezone.utc)
    store = MemoryCouponStore(clock=lambda: frozen)
    store.create(_coupon())
    later_id = store.create(_coupon())

    deleted = store.delete_one_most_recent("₹500")

    assert deleted is not None
    assert deleted.id == later_id
    assert store.count_where("₹500") == 1


def test_memory_store_delete_missing_returns_none(store: MemoryCouponStore) -> None:
    store.create(_coupon("₹200", 200))
    assert store.delete_one_most_recent("₹500") is None
    assert store.count_where("₹200") == 1


def test_build_store_selects_backend(settings, bubble_settings) -> None:
    assert isinstance(build_store(settings), MemoryCouponStore)
    assert isinstance(build_store(bubble_settings), BubbleCouponStore)


class FakeBubble:
    """Minimal stand-in for the Bubble Data API ``Coupon`` table."""

    def __init__(self) -> None:
        self.rows: List[Dict[str, Any]] = []
        self.searches: List[Dict[str, Any]] = []
        self._next = 0

    def create(self, type_name: str, payload: Dict[str, Any], **_: Any) -> Dict[str, Any]:
        assert type_name == "Coupon"
        self._next += 1
        row = dict(payload)
        row["_id"] = f"b{self._next}"
        row["Created Date"] = f"2025-01-01T00:00:{self._next:02d}.000Z"
        self.rows.append(row)
        return {"status": "success", "id": row["_id"]}

    def search(
        self,
        type_name: str,
        *,
        constraints: Optional[List[Dict[str, Any]]] = None,
        limit: Optional[int] = None,
        cursor: Optional[int] = None,
        sort_field: Optional[str] = None,
        descending: bool = True,
        **_: Any,
    ) -> Dict[str, Any]:
        assert type_name == "Coupon"
        self.searches.append({"constraints": constraints, "limit": limit, "cursor": cursor, "sort_field": sort_field})
        rows = list(self.rows)
        for constraint in constraints or []:
            rows = [row for row in rows if row.get(constraint["key"]) == constraint["value"]]
        if sort_field:
            rows.sort(key=lambda row: row[sort_field], reverse=descending)
        start = cursor or 0
        end = start + (limit or 100)
        page = rows[start:end]
        return {
            "response": {
                "cursor": start,
                "results": page,
                "count": len(page),
                "remaining": max(len(rows) - end, 0),
            }
        }

    def delete(self, type_name: str, thing_id: str, **_: Any) -> Dict[str, Any]:
        assert type_name == "Coupon"
        self.rows = [row for row in self.rows if row["_id"] != thing_id]
        return {}


@pytest.fixture
def fake_bubble(monkeypatch: pytest.MonkeyPatch) -> FakeBubble:
    fake = FakeBubble()
    monkeypatch.setattr(coupon_store.bubble_client, "bubble_create", fake.create)
    monkeypatch.setattr(coupon_store.bubble_client, "bubble_search", fake.search)
    monkeypatch.setattr(coupon_store.bubble_client, "bubble_delete", fake.delete)
    return fake


def test_bubble_store_create_and_count(fake_bubble: FakeBubble, bubble_settings) -> None:
    store = BubbleCouponStore(bubble_settings)

    first = store.create(_coupon())
    store.create(_coupon())
    store.create(_coupon("₹200", 200))

    assert first == "b1"
    assert fake_bubble.rows[0]["amount"] == "₹500"
    assert fake_bubble.rows[0]["amount_value"] == 500.0
    assert store.count_where("₹500") == 2
    assert store.count_where("₹999") == 0


def test_bubble_store_lists_all_pages(
    fake_bubble: FakeBubble, bubble_settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(coupon_store, "PAGE_SIZE", 2)
    store = BubbleCouponStore(bubble_settings)
    for _ in range(5):
        store.create(_coupon())

    records = store.list_all()

    assert [record.id for record in records] == ["b1", "b2", "b3", "b4", "b5"]
    assert records[0].created_at == datetime(2025, 1, 1, 0, 0, 1, tzinfo=timezone.utc)
    assert [search["cursor"] for search in fake_bubble.searches] == [0, 2, 4]


def test_bubble_store_deletes_newest_match(fake_bubble: FakeBubble, bubble_settings) -> None:
    store = BubbleCouponStore(bubble_settings)
    store.create(_coupon())
    store.create(_coupon())

    deleted = store.delete_one_most_recent("₹500")

    assert deleted is not None
    assert deleted.id == "b2"
    assert [row["_id"] for row in fake_bubble.rows] == ["b1"]
    assert fake_bubble.searches[-1]["sort_field"] == "Created Date"
    assert store.delete_one_most_recent("₹200") is None


def test_bubble_store_delete_all(
    fake_bubble: FakeBubble, bubble_settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(coupon_store, "PAGE_SIZE", 2)
    store = BubbleCouponStore(bubble_settings)
    for _ in range(3):
        store.create(_coupon())

    assert store.delete_all() == 3
    assert fake_bubble.rows == []
    assert store.delete_all() == 0


def test_bubble_store_rejects_rows_without_id(bubble_settings, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        coupon_store.bubble_client,
        "bubble_search",
        lambda *_, **__: {"response": {"results": [{"amount": "₹500"}], "remaining": 0}},
    )
    with pytest.raises(CouponStoreError):
        BubbleCouponStore(bubble_settings).list_all()
