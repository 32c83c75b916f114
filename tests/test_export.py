import csv
import json

from bookmap.core.models import BookRecord
from bookmap.io.export import write_catalog_csv, write_catalog_json, write_json


def _records():
    return [
        BookRecord.from_mapping({"id": "1", "title": "채식주의자", "author": "한강", "registrant": "kim"}),
        BookRecord.from_mapping({"id": None, "title": "no id"}),
    ]


def test_write_json_creates_dirs(tmp_path) -> None:
    out = tmp_path / "nested" / "graph.json"
    write_json({"facet": "카테고리", "links": []}, str(out))
    text = out.read_text(encoding="utf-8")
    assert "카테고리" in text
    assert json.loads(text) == {"facet": "카테고리", "links": []}
    assert [p.name for p in out.parent.iterdir()] == ["graph.json"]


def test_write_catalog_json_keeps_extras(tmp_path) -> None:
    out = tmp_path / "books.json"
    assert write_catalog_json(_records(), str(out)) == 2
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data[0]["registrant"] == "kim"
    assert data[1]["id"] is None


def test_catalog_csv(tmp_path) -> None:
    out = tmp_path / "books.csv"
    assert write_catalog_csv(_records(), str(out)) == 2
    with open(out, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        rows = list(reader)
    assert reader.fieldnames[:3] == ["id", "title", "author"]
    assert "registrant" not in reader.fieldnames
    assert rows[0]["id"] == "1"
    assert rows[0]["title"] == "채식주의자"
    assert rows[1]["id"] == ""
