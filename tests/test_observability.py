import logging

import pytest

from tariffnav.observability import (
    bind_request_id,
    log_event,
    redact_secret,
    reset_request_id,
    timed_event,
)

LOGGER = "tariffnav.observability"


def _payloads(caplog, message):
    return [record.payload for record in caplog.records if record.getMessage() == message]


def test_log_event_attaches_request_id(caplog):
    token = bind_request_id("req-7")
    try:
        with caplog.at_level(logging.INFO, logger=LOGGER):
            log_event("classification.started", material="ceramic")
    finally:
        reset_request_id(token)
    assert _payloads(caplog, "classification.started") == [{"request_id": "req-7", "material": "ceramic"}]


def test_timed_event_records_fields_and_duration(caplog):
    with caplog.at_level(logging.INFO, logger=LOGGER):
        with timed_event("classification.resolve", product_type="mug") as event:
            event["source"] = "material_route"
    (payload,) = _payloads(caplog, "classification.resolve")
    assert payload["product_type"] == "mug"
    assert payload["source"] == "material_route"
    assert payload["outcome"] == "ok"
    assert payload["duration_ms"] >= 0


def test_timed_event_logs_errors_and_reraises(caplog):
    with caplog.at_level(logging.INFO, logger=LOGGER):
        with pytest.raises(KeyError):
            with timed_event("classification.resolve"):
                raise KeyError("8544")
    (payload,) = _payloads(caplog, "classification.resolve")
    assert payload["outcome"] == "error"
    assert payload["error"] == "KeyError"


def test_redact_secret():
    assert redact_secret(None) == "<missing>"
    assert redact_secret("abc") == "***"
    assert redact_secret("test-key") == "test***"
