"""
test_serialization.py - Unit tests for the JSON codec

Tests:
- Timestamp parsing (offsets, "Z", nanosecond precision, naive values)
- Sold unit and event encoding
- Decoding legacy files whose sales carry no replicas
- Rejection of malformed documents
"""

import json
import pytest
from datetime import datetime, timezone

from tally import (
    SoldUnit, Sale, Checkpoint, DeserializationFailure,
    event_to_json, event_from_json,
    dumps_active_units, loads_active_units, dumps_log, loads_log,
    parse_timestamp,
)


T0 = datetime(2025, 5, 3, 10, 0, 0, 123456, tzinfo=timezone.utc)


class TestParseTimestamp:
    """Tests for parse_timestamp()."""

    def test_isoformat_with_offset(self):
        assert parse_timestamp("2025-05-03T10:00:00.123456+00:00") == T0

    def test_trailing_z(self):
        assert parse_timestamp("2025-05-03T10:00:00.123456Z") == T0

    def test_nanoseconds_truncated(self):
        assert parse_timestamp("2025-05-03T10:00:00.123456789Z") == T0

    def test_naive_is_utc(self):
        parsed = parse_timestamp("2025-05-03T10:00:00")
        assert parsed.tzinfo == timezone.utc

    def test_invalid_string_raises(self):
        with pytest.raises(DeserializationFailure, match="Invalid timestamp"):
            parse_timestamp("yesterday")

    def test_non_string_raises(self):
        with pytest.raises(DeserializationFailure, match="must be a string"):
            parse_timestamp(1714730400)


class TestEventEncoding:
    """Tests for event_to_json() and event_from_json()."""

    def test_checkpoint_is_reset_tag(self):
        assert event_to_json(Checkpoint()) == "Reset"
        assert event_from_json("Reset") == Checkpoint()

    def test_sale_layout(self):
        unit = SoldUnit("チョコ", T0)
        encoded = event_to_json(Sale(unit, 3))
        assert encoded == {"Food": [{"name": "チョコ", "time": T0.isoformat()}, 3]}

    def test_sale_with_replicas_roundtrip(self):
        replicas = (SoldUnit("A", T0), SoldUnit("A", T0.replace(second=1)))
        sale = Sale(replicas[0], 2, replicas)
        encoded = event_to_json(sale)
        assert len(encoded["replicas"]) == 2
        assert event_from_json(json.loads(json.dumps(encoded))) == sale

    def test_legacy_sale_decodes(self):
        data = {"Food": [{"name": "いちご", "time": "2025-05-03T10:00:00.123456789Z"}, 3]}
        sale = event_from_json(data)
        assert sale == Sale(SoldUnit("いちご", T0), 3)
        assert sale.replicas == ()

    def test_encode_unknown_event_raises(self):
        with pytest.raises(TypeError):
            event_to_json("Reset")

    @pytest.mark.parametrize("data", [
        "Checkpoint",
        42,
        {"Sale": []},
        {"Food": [{"name": "A", "time": "2025-05-03T10:00:00Z"}]},
        {"Food": [{"name": "A", "time": "2025-05-03T10:00:00Z"}, "3"]},
        {"Food": [{"name": "A", "time": "2025-05-03T10:00:00Z"}, True]},
        {"Food": [{"name": "A", "time": "2025-05-03T10:00:00Z"}, -1]},
        {"Food": [{"name": "A"}, 1]},
        {"Food": [{"name": 7, "time": "2025-05-03T10:00:00Z"}, 1]},
        {"Food": [{"name": "A", "time": "2025-05-03T10:00:00Z"}, 2], "replicas": "x"},
        {"Food": [{"name": "A", "time": "2025-05-03T10:00:00Z"}, 2],
         "replicas": [{"name": "A", "time": "2025-05-03T10:00:00Z"}]},
    ])
    def test_malformed_entries_raise(self, data):
        with pytest.raises(DeserializationFailure):
            event_from_json(data)


class TestDocuments:
    """Tests for whole-file encoding."""

    def test_active_units_keep_non_ascii(self):
        text = dumps_active_units([SoldUnit("シナモン", T0)])
        assert "シナモン" in text
        assert loads_active_units(text) == [SoldUnit("シナモン", T0)]

    def test_log_document(self):
        log = [Sale(SoldUnit("A", T0), 1), Checkpoint()]
        assert loads_log(dumps_log(log)) == log

    def test_legacy_history_file(self):
        text = (
            '[{"Food":[{"name":"プレーン","time":"2025-05-03T10:00:00.123456Z"},3]},'
            '"Reset",'
            '{"Food":[{"name":"チョコ","time":"2025-05-03T10:00:00.123456Z"},2]}]'
        )
        log = loads_log(text)
        assert [type(e) for e in log] == [Sale, Checkpoint, Sale]
        assert log[2].quantity == 2

    def test_invalid_json_raises(self):
        with pytest.raises(DeserializationFailure, match="not valid JSON"):
            loads_log("[{")

    def test_non_array_raises(self):
        with pytest.raises(DeserializationFailure, match="must be a JSON array"):
            loads_active_units('{"name": "A"}')

    def test_empty_array(self):
        assert loads_log("[]") == []
        assert loads_active_units("[]") == []
