from datetime import datetime, timezone

import pytest

from bookmap.core.models import BookRecord
from bookmap.core.store import CatalogStore, latest_books, sort_books, to_stamp


REMOTE = [
    {"id": 1, "title": "remote one", "division": "번역", "created_at": "2024-01-02 03:04:05"},
    {"id": "3", "title": "remote three", "created_at": "2024-03-01 00:00:00", "registrant": "kim"},
]
LOCAL = [
    {"id": "1", "title": "local one"},
    {"id": "2", "title": "local two", "created_at": "2024-02-01T00:00:00"},
    {"title": "no id"},
]


def _store() -> CatalogStore:
    return CatalogStore(remote_loader=lambda: list(REMOTE), local_loader=lambda: list(LOCAL))


def test_to_stamp() -> None:
    expected = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc).timestamp() * 1000
    assert to_stamp("2024-01-02 03:04:05", None) == expected
    assert to_stamp("2024-01-02T03:04:05Z", None) == expected
    assert to_stamp("", "1700000000000") == 1700000000000.0
    assert to_stamp("not a date", "abc") == 0.0
    assert to_stamp(None, None) == 0.0


def test_sort_and_latest() -> None:
    books = [BookRecord.from_mapping(r) for r in REMOTE + LOCAL]
    ordered = sort_books(books)
    assert [b.title for b in ordered[:3]] == ["remote three", "local two", "remote one"]
    assert [b.title for b in latest_books(books, 2)] == ["remote three", "local two"]
    assert latest_books(books, 0) == []


def test_load_merges_with_remote_priority() -> None:
    store = _store()
    books = store.load()
    by_id = {b.id: b for b in books}
    assert set(by_id) == {"1", "2", "3"}
    assert by_id["1"].title == "remote one"
    assert by_id["1"].division == "번역서"
    assert by_id["3"].extras == {"registrant": "kim"}
    # id-less record is held but not exposed
    assert store.size() == 4


def test_load_prefer_local_and_single_source() -> None:
    store = _store()
    assert store.find("1") is None
    store.load()
    assert store.find("1").title == "remote one"
    store.load(prefer="local")
    assert store.find("1").title == "local one"
    books = store.load(source="local")
    assert [b.title for b in books] == ["local one", "local two"]
    with pytest.raises(ValueError):
        store.load(source="cloud")


def test_find_by_string_then_number() -> None:
    store = _store()
    store.load()
    assert store.find(" 2 ").title == "local two"
    assert store.find("1.0").title == "remote one"
    assert store.find(3).title == "remote three"
    assert store.find("999") is None
    assert store.find("") is None
    assert store.find(None) is None


def test_apply_merge_priority() -> None:
    store = CatalogStore()
    store.apply_merge([{"id": "1", "title": "a"}], [{"id": "1", "title": "b"}], priority="b")
    assert store.current_collection()[0].title == "b"
    with pytest.raises(ValueError):
        store.apply_merge([], [], priority="c")


def test_record_round_trips_extras() -> None:
    rec = BookRecord.from_mapping({"id": 9, "title": "t", "buy_link": "http://x"})
    d = rec.to_dict()
    assert d["id"] == "9"
    assert d["buy_link"] == "http://x"
    assert "extras" not in d
