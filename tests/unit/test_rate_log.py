"""
Tests for the rate request audit log.
"""
import json

import pytest

from freight_bridge.core.background import drain_background_tasks
from freight_bridge.services.rate_log import (
    RATES_DATA_MAX_LENGTH,
    REQUEST_TYPE_CARRIER_SERVICE,
    STATUS_SUCCESS,
    TRUNCATION_SUFFIX,
    RateLogEntry,
    RateRequestLogger,
    truncate_json,
)


def test_truncate_json_short_value_untouched():
    assert truncate_json({"a": 1}) == '{"a": 1}'


def test_truncate_json_marks_cut():
    text = truncate_json({"data": "x" * 100}, max_length=20)

    assert text.endswith(TRUNCATION_SUFFIX)
    assert len(text) == 20 + len(TRUNCATION_SUFFIX)


def make_entry(**overrides):
    values = dict(
        shop_domain="shop",
        correlation_id="corr-1",
        request_type=REQUEST_TYPE_CARRIER_SERVICE,
        cart_skus=["SKU-1", "SKU-2"],
        cart_item_count=3,
        status=STATUS_SUCCESS,
    )
    values.update(overrides)
    return RateLogEntry(**values)


def test_to_model_serializes_lists_and_truncates():
    row = make_entry(
        ingram_part_nums=["P1"],
        rates_data=[{"service_name": "x" * RATES_DATA_MAX_LENGTH}],
    ).to_model()

    assert json.loads(row.cart_skus) == ["SKU-1", "SKU-2"]
    assert json.loads(row.ingram_part_nums) == ["P1"]
    assert row.rates_data.endswith(TRUNCATION_SUFFIX)
    assert row.error_details is None
    assert row.ingram_raw_response is None


@pytest.mark.asyncio
async def test_log_writes_in_background(session_factory, mock_db):
    RateRequestLogger(session_factory).log(make_entry())
    await drain_background_tasks()

    row = mock_db.add.call_args[0][0]
    assert row.correlation_id == "corr-1"
    assert row.status == STATUS_SUCCESS


@pytest.mark.asyncio
async def test_log_failure_does_not_raise(session_factory, mock_db):
    mock_db.add.side_effect = RuntimeError("log table missing")

    RateRequestLogger(session_factory).log(make_entry())
    await drain_background_tasks()
