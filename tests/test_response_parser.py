"""
Unit tests for response validation and field extraction.
"""

import pytest
from datetime import datetime

from pbi_monitor.core.response_parser import (
    first_guid,
    first_text,
    get_bool,
    get_datetime,
    get_guid,
    get_text,
    parse_json_array,
    parse_json_object,
)
from pbi_monitor.utils.exceptions import ResponseParseError


class TestParseJsonArray:
    def test_odata_envelope(self):
        items = parse_json_array('{"value": [{"id": 1}, {"id": 2}]}')

        assert items == [{"id": 1}, {"id": 2}]

    def test_bare_array(self):
        assert parse_json_array('[{"id": 1}]') == [{"id": 1}]

    def test_non_object_members_dropped(self):
        assert parse_json_array('[{"id": 1}, 3, "x", null]') == [{"id": 1}]

    def test_empty_array(self):
        assert parse_json_array('{"value": []}') == []

    @pytest.mark.parametrize("body", ["", "not json", "{\"value\": 5}", "{\"other\": []}", "42"])
    def test_invalid_shapes_raise(self, body):
        with pytest.raises(ResponseParseError):
            parse_json_array(body)


class TestParseJsonObject:
    def test_object(self):
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_array_rejected(self):
        with pytest.raises(ResponseParseError, match="not a JSON object"):
            parse_json_object("[]")


class TestFieldExtraction:
    def test_get_text_defaults_and_strips(self):
        obj = {"name": "  Sales  ", "count": 3, "empty": None}

        assert get_text(obj, "name") == "Sales"
        assert get_text(obj, "count") == "3"
        assert get_text(obj, "empty") == ""
        assert get_text(obj, "missing", "n/a") == "n/a"

    def test_first_text_falls_back(self):
        assert first_text({"requestId": "", "id": "R9"}, ("requestId", "id")) == "R9"
        assert first_text({"requestId": "R1", "id": "R9"}, ("requestId", "id")) == "R1"
        assert first_text({}, ("requestId", "id")) == ""

    def test_get_guid_normalizes(self):
        obj = {"id": "{AAAAAAAA-0000-0000-0000-000000000001}"}

        assert get_guid(obj, "id") == "aaaaaaaa-0000-0000-0000-000000000001"

    def test_get_guid_rejects_garbage(self):
        assert get_guid({"id": "not-a-guid"}, "id") is None
        assert get_guid({}, "id") is None

    def test_first_guid_prefers_object_id(self):
        obj = {
            "objectId": "11111111-1111-1111-1111-111111111111",
            "id": "22222222-2222-2222-2222-222222222222",
        }

        assert first_guid(obj, ("objectId", "id")) == "11111111-1111-1111-1111-111111111111"
        assert first_guid({"id": obj["id"]}, ("objectId", "id")) == obj["id"]

    @pytest.mark.parametrize(
        "value, expected",
        [(True, True), (False, False), ("true", True), ("False", False), (1, True), (None, False)],
    )
    def test_get_bool(self, value, expected):
        assert get_bool({"flag": value}, "flag") is expected

    def test_get_datetime_utc_z(self):
        assert get_datetime({"t": "2024-05-01T10:00:00Z"}, "t") == datetime(2024, 5, 1, 10, 0, 0)

    def test_get_datetime_offset_converted_to_utc(self):
        value = get_datetime({"t": "2024-05-01T12:00:00+02:00"}, "t")

        assert value == datetime(2024, 5, 1, 10, 0, 0)

    def test_get_datetime_seven_fraction_digits(self):
        value = get_datetime({"t": "2024-05-01T10:00:00.1234567Z"}, "t")

        assert value == datetime(2024, 5, 1, 10, 0, 0, 123456)

    def test_get_datetime_invalid(self):
        assert get_datetime({"t": "yesterday"}, "t") is None
        assert get_datetime({}, "t") is None
