import time

import pytest

from mediasource.core.errors import InvalidResponse, PartialMappingError
from mediasource.core.mapping import (
    map_batch,
    parse_timestamp_ms,
    popularity,
    proxied_image,
    require_id,
    seconds_to_ms,
    to_int,
    tolerant_mapper,
    top_tags,
)
from mediasource.core.payload import AppFailure, Payload, classify_payload, parse_json


def test_to_int_is_lenient():
    assert to_int("12") == 12
    assert to_int("12 tracks") == 12
    assert to_int(12.9) == 12
    assert to_int(None) == 0
    assert to_int("n/a") == 0
    assert to_int(True) == 0


def test_duration_and_popularity_defaults():
    assert seconds_to_ms(245) == 245000
    assert seconds_to_ms(None) == 0
    assert popularity(100, None, "50") == 150


def test_image_proxy_wraps_relative_tokens_only():
    assert proxied_image("https://cdn.example.com/a.jpg") == "https://cdn.example.com/a.jpg"
    assert proxied_image("covers/a b.jpg", "https://proxy/{token}") == "https://proxy/covers%2Fa%20b.jpg"
    assert proxied_image("") == ""


def test_timestamp_parsing_and_missing_policy():
    assert parse_timestamp_ms("2020-01-01") == 1577836800000
    assert parse_timestamp_ms("2020-01-01T00:00:00Z") == 1577836800000
    assert parse_timestamp_ms(1577836800) == 1577836800000
    assert parse_timestamp_ms(None, "epoch") == 0
    assert parse_timestamp_ms("garbage", "epoch") == 0
    before = int(time.time() * 1000)
    assert parse_timestamp_ms(None, "now") >= before


def test_top_tags_heaviest_first():
    tags = {"rock": 3, "pop": 7, "jazz": 5, "a": 1, "b": 2, "c": 0}
    assert top_tags(tags) == "#pop #jazz #rock #b #a"
    assert top_tags(None) == ""


def test_require_id():
    assert require_id({"id": 0}, "id") == "0"
    assert require_id({"slug": "x"}, "id", "slug") == "x"
    with pytest.raises(PartialMappingError):
        require_id({"id": ""}, "id")


def test_map_batch_drops_records_without_id():
    @tolerant_mapper
    def mapper(record):
        return require_id(record, "id")

    assert map_batch([{"id": 1}, {"name": "no id"}, {"id": 3}], mapper) == ["1", "3"]


def test_tolerant_mapper_absorbs_unexpected_errors():
    @tolerant_mapper
    def boom(record):
        raise KeyError("x")

    assert boom({}) is None


def test_classify_payload_variants():
    payload = classify_payload({"response": {"docs": [1, 2]}}, ("response", "docs"))
    assert isinstance(payload, Payload)
    assert payload.results == [1, 2]

    assert classify_payload([1], ("ignored",)).results == [1]
    assert classify_payload({"results": "not a list"}).results == []

    failure = classify_payload({"error": "bad"}, error_probe=lambda d: d.get("error"))
    assert failure == AppFailure("bad")

    with pytest.raises(InvalidResponse):
        classify_payload("text")
    with pytest.raises(InvalidResponse):
        parse_json("{not json")
