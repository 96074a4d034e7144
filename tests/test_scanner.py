from datetime import datetime, timezone

import pytest
import requests

from crowdbot import scanner
from crowdbot.errors import MarketFetchError, RateLimitedError


class _FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


def _patch_get(monkeypatch, response=None, error=None):
    calls = []

    def fake_get(url, params=None, timeout=None, headers=None):
        calls.append({"url": url, "params": params, "timeout": timeout})
        if error is not None:
            raise error
        return response

    monkeypatch.setattr(scanner.requests, "get", fake_get)
    return calls


def test_snapshot_from_record_reads_gamma_string_prices():
    record = {
        "id": "123",
        "question": "Will the Fed cut rates in March?",
        "outcomePrices": "[\"0.65\", \"0.35\"]",
        "volume24hr": "12000.5",
        "category": "Economics",
        "endDate": "2025-03-20T00:00:00Z",
        "slug": "fed-cut-march",
        "oneDayPriceChange": 0.04,
    }

    snapshot = scanner.snapshot_from_record(record)

    assert snapshot.question == "Will the Fed cut rates in March?"
    assert snapshot.yes_probability == pytest.approx(0.65)
    assert snapshot.volume_24h == pytest.approx(12000.5)
    assert snapshot.category == "Economics"
    assert snapshot.end_date == datetime(2025, 3, 20, tzinfo=timezone.utc)
    assert snapshot.market_id == "123"
    assert snapshot.one_day_price_change == pytest.approx(0.04)


def test_snapshot_from_record_reads_list_prices():
    snapshot = scanner.snapshot_from_record({"question": "Q", "outcomePrices": [0.2, 0.8]})

    assert snapshot.yes_probability == pytest.approx(0.2)


@pytest.mark.parametrize(
    "prices, expected",
    [
        (None, 0.5),
        ([], 0.5),
        ("not json", 0.5),
        (["abc"], 0.5),
        (["1.4"], 1.0),
        (["-0.2"], 0.0),
        ([0], 0.0),
    ],
)
def test_extract_yes_probability_defaults_and_clamps(prices, expected):
    record = {"question": "Q"}
    if prices is not None:
        record["outcomePrices"] = prices

    assert scanner.extract_yes_probability(record) == expected


def test_snapshot_from_record_never_rejects_missing_fields():
    snapshot = scanner.snapshot_from_record({})

    assert snapshot.question == "Unknown Market"
    assert snapshot.yes_probability == 0.5
    assert snapshot.volume_24h == 0.0
    assert snapshot.category == ""
    assert snapshot.end_date is None
    assert snapshot.one_day_price_change is None


def test_normalize_markets_skips_non_objects(caplog):
    markets = scanner.normalize_markets([{"question": "ok"}, "garbage", None])

    assert [m.question for m in markets] == ["ok"]
    assert "Skipping market at index 1" in caplog.text


def test_fetch_markets_sends_filters_and_normalizes(monkeypatch):
    payload = [
        {"question": "A", "outcomePrices": "[\"0.9\", \"0.1\"]", "volume24hr": 8000},
        {"question": "B", "outcomePrices": "[\"0.5\", \"0.5\"]", "volume24hr": 6000},
    ]
    calls = _patch_get(monkeypatch, _FakeResponse(payload=payload))

    markets = scanner.fetch_markets(limit=2)

    assert [m.question for m in markets] == ["A", "B"]
    assert calls[0]["url"].endswith("/markets")
    assert calls[0]["params"]["closed"] == "false"
    assert calls[0]["params"]["active"] == "true"
    assert calls[0]["params"]["limit"] == 2
    assert "order" not in calls[0]["params"]


def test_fetch_trending_markets_orders_by_volume(monkeypatch):
    calls = _patch_get(monkeypatch, _FakeResponse(payload=[]))

    assert scanner.fetch_trending_markets(limit=50) == []
    assert calls[0]["params"]["order"] == "volume24hr"
    assert calls[0]["params"]["ascending"] == "false"
    assert calls[0]["params"]["limit"] == 50


def test_fetch_markets_rate_limited(monkeypatch):
    _patch_get(monkeypatch, _FakeResponse(status_code=429, text="Too Many Requests"))

    with pytest.raises(RateLimitedError) as excinfo:
        scanner.fetch_markets()

    assert excinfo.value.status_code == 429


def test_fetch_markets_http_error_signals_failure(monkeypatch):
    _patch_get(monkeypatch, _FakeResponse(status_code=503, text="unavailable"))

    with pytest.raises(MarketFetchError) as excinfo:
        scanner.fetch_markets()

    assert excinfo.value.status_code == 503


@pytest.mark.parametrize(
    "error",
    [requests.exceptions.Timeout("slow"), requests.exceptions.ConnectionError("down")],
)
def test_fetch_markets_network_errors_signal_failure(monkeypatch, error):
    _patch_get(monkeypatch, error=error)

    with pytest.raises(MarketFetchError):
        scanner.fetch_markets()


def test_fetch_markets_bad_json(monkeypatch):
    _patch_get(monkeypatch, _FakeResponse(payload=ValueError("no json")))

    with pytest.raises(MarketFetchError):
        scanner.fetch_markets()


def test_fetch_markets_non_list_payload(monkeypatch):
    _patch_get(monkeypatch, _FakeResponse(payload={"error": "oops"}))

    with pytest.raises(MarketFetchError):
        scanner.fetch_markets()
