"""Tests for normalizing collection payloads into Page."""

from __future__ import annotations

from src.backoffice.pages import Page, Pagination, decode_page


class TestDecodePage:
    def test_bare_list(self) -> None:
        page = decode_page([{"id": 1}, {"id": 2}])
        assert page.items == [{"id": 1}, {"id": 2}]
        assert page.pagination == Pagination(page=1, per_page=2, total=2, total_pages=1)

    def test_paginated_payload(self) -> None:
        page = decode_page({
            "data": [{"id": 3}],
            "pagination": {"page": 2, "per_page": 1, "total": 5, "total_pages": 5},
        })
        assert len(page) == 1
        assert page.pagination == Pagination(page=2, per_page=1, total=5, total_pages=5)

    def test_total_pages_derived_when_missing(self) -> None:
        page = decode_page({"data": [{"id": 1}], "pagination": {"page": 1, "per_page": 20, "total": 41}})
        assert page.pagination.total_pages == 3

    def test_data_without_pagination(self) -> None:
        page = decode_page({"data": [{"id": 1}]})
        assert page.pagination == Pagination.single(1)

    def test_none_is_empty(self) -> None:
        assert decode_page(None) == Page()

    def test_unrecognized_shape_is_empty(self, caplog) -> None:
        assert decode_page({"error": "boom"}).items == []
        assert decode_page("oops").items == []
        assert "Unrecognized collection payload" in caplog.text

    def test_non_object_items_dropped(self) -> None:
        page = decode_page([{"id": 1}, "junk", None])
        assert page.items == [{"id": 1}]

    def test_iterates_items(self) -> None:
        assert [t["id"] for t in decode_page([{"id": 1}, {"id": 2}])] == [1, 2]

    def test_to_payload_round_trips_shape(self) -> None:
        payload = decode_page([{"id": 1}]).to_payload()
        assert payload == {
            "data": [{"id": 1}],
            "pagination": {"page": 1, "per_page": 1, "total": 1, "total_pages": 1},
        }
        assert decode_page(payload) == decode_page([{"id": 1}])
