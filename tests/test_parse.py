import pytest

from bookmap.core.parse import (
    find_provider_error,
    find_xml_error,
    parse_aladin_xml,
    parse_int,
    parse_loose_json,
    requote_single_quoted,
)
from bookmap.errors import ParseFailure, ProviderUnavailable

ALADIN_XML = """<?xml version="1.0" encoding="utf-8"?>
<object xmlns="http://www.aladin.co.kr/ttb/apiguide.aspx">
  <totalResults>2</totalResults>
  <startIndex>1</startIndex>
  <itemsPerPage>5</itemsPerPage>
  <item itemId="1">
    <title><![CDATA[채식주의자 <리커버>]]></title>
    <link>https://www.aladin.co.kr/shop/wproduct.aspx?ItemId=1&amp;partner=x</link>
    <author>한강 (지은이)</author>
    <pubDate>2022-03-28</pubDate>
    <description><![CDATA[]]></description>
    <isbn>8936434594</isbn>
    <isbn13>9788936434595</isbn13>
    <priceSales>13,500</priceSales>
    <priceStandard>15000</priceStandard>
    <cover>https://image.aladin.co.kr/cover.jpg</cover>
    <categoryName>국내도서&gt;소설</categoryName>
    <publisher>창비</publisher>
  </item>
  <item itemId="2">
    <title>   </title>
    <isbn13>9780000000002</isbn13>
  </item>
</object>
"""


def test_loose_json_single_quotes() -> None:
    data = parse_loose_json("{'errorCode':8,'errorMessage':'not found'}")
    assert data == {"errorCode": 8, "errorMessage": "not found"}


def test_loose_json_strict_first() -> None:
    assert parse_loose_json('{"item": [{"title": "It\'s"}]}') == {"item": [{"title": "It's"}]}


def test_loose_json_jsonp_tail_and_control_chars() -> None:
    body = '{"item": [{"title": "a\tb"}]};'
    assert parse_loose_json(body) == {"item": [{"title": "a\tb"}]}


def test_requote_keeps_double_quoted_apostrophes() -> None:
    assert requote_single_quoted("{\"a\": \"it's\", 'b': 'x\\'y'}") == '{"a": "it\'s", "b": "x\'y"}'


def test_loose_json_failure_raises_parse_failure() -> None:
    with pytest.raises(ParseFailure) as exc:
        parse_loose_json("<html>Service Unavailable</html>", label="AladinLookup")
    assert isinstance(exc.value, ProviderUnavailable)
    assert "AladinLookup" in str(exc.value)
    assert "Service Unavailable" in exc.value.body_preview


def test_find_provider_error_any_casing() -> None:
    err = find_provider_error({"errorCode": 8, "errorMessage": "not found"})
    assert err is not None
    assert err.code == "8"
    assert err.message == "not found"

    err = find_provider_error({"errorcode": "3", "ERRORMESSAGE": "bad key"})
    assert err.code == "3"
    assert err.message == "bad key"

    err = find_provider_error({"error": {"errcode": 10, "errmsg": "limit"}})
    assert err.code == "10"

    assert find_provider_error({"item": []}) is None
    assert find_provider_error([1, 2]) is None


def test_parse_aladin_xml_items() -> None:
    books = parse_aladin_xml(ALADIN_XML)
    # untitled second item is dropped; <itemsPerPage> is not an item
    assert len(books) == 1
    b = books[0]
    assert b["title"] == "채식주의자 <리커버>"
    assert b["author"] == "한강 (지은이)"
    assert b["publisher"] == "창비"
    assert b["publishDate"] == "2022-03-28"
    assert b["isbn"] == "9788936434595"
    assert b["image"] == "https://image.aladin.co.kr/cover.jpg"
    assert b["category"] == "국내도서>소설"
    assert b["priceStandard"] == 15000
    assert b["priceSales"] == 13500
    assert b["link"].endswith("ItemId=1&partner=x")
    assert b["description"] == ""


def test_find_xml_error() -> None:
    xml = (
        '<?xml version="1.0"?><error xmlns="http://www.aladin.co.kr/ttb/apiguide.aspx">'
        "<errorCode>100</errorCode><errorMessage>잘못된 TTBKey 입니다.</errorMessage></error>"
    )
    err = find_xml_error(xml)
    assert err is not None
    assert err.code == "100"
    assert err.message == "잘못된 TTBKey 입니다."
    assert find_xml_error(ALADIN_XML) is None


def test_parse_int() -> None:
    assert parse_int("1,200") == 1200
    assert parse_int(" 15000 ") == 15000
    assert parse_int("") is None
    assert parse_int(None) is None
    assert parse_int("n/a") is None
