import json
import logging

from voxqueue.core.logging import StructuredFormatter, get_correlation_id, set_correlation_id

def _record(msg, **extra):
    record = logging.LogRecord("voxqueue.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record

def test_structured_formatter_emits_json_with_extras():
    formatter = StructuredFormatter()
    set_correlation_id("item-42")
    try:
        payload = json.loads(formatter.format(_record("Playing item", item_id="item-42", bytes=10)))
    finally:
        set_correlation_id(None)

    assert payload["message"] == "Playing item"
    assert payload["level"] == "INFO"
    assert payload["module"] == "voxqueue.test"
    assert payload["correlation_id"] == "item-42"
    assert payload["item_id"] == "item-42"
    assert payload["bytes"] == 10

def test_correlation_id_defaults_to_none():
    assert get_correlation_id() is None
    payload = json.loads(StructuredFormatter().format(_record("hello")))
    assert payload["correlation_id"] is None
    assert "args" not in payload
