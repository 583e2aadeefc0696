"""Tests for the DynamoDB client wrapper and background fetcher."""
from __future__ import annotations

import threading

import pytest
from botocore.exceptions import EndpointConnectionError

import dynamo
from app_state import TableListLoaded, TableLoaded
from dynamo import SCAN_LIMIT, DynamoClient, Fetcher, scan_items
from mocks import NOT_FOUND, USERS, FakeBotoClient


def run_inline(fn):
    fn()


def make_fetcher(boto_client, limit=SCAN_LIMIT):
    posted = []
    fetcher = Fetcher(DynamoClient(client=boto_client), posted.append, scan_limit=limit, spawn=run_inline)
    return fetcher, posted


# --------------------
# Client wrapper
# --------------------

def test_client_passes_endpoint_and_region(monkeypatch):
    calls = []

    def fake_client(service, **kwargs):
        calls.append((service, kwargs))
        return FakeBotoClient()

    monkeypatch.setattr(dynamo.boto3, "client", fake_client)
    DynamoClient("http://localhost:8000", "eu-west-1")
    DynamoClient()

    assert calls[0] == ("dynamodb", {"endpoint_url": "http://localhost:8000", "region_name": "eu-west-1"})
    assert calls[1] == ("dynamodb", {})


def test_scan_applies_limit():
    boto = FakeBotoClient(items={"users": USERS})
    client = DynamoClient(client=boto)

    scan_items(client, "users", 1)
    scan_items(client, "users", None)

    assert boto.scans == [{"TableName": "users", "Limit": 1}, {"TableName": "users"}]


# --------------------
# Fetcher
# --------------------

def test_refresh_table_list_posts_names():
    fetcher, posted = make_fetcher(FakeBotoClient(tables={"orders": [], "users": []}))
    fetcher.refresh_table_list()
    assert posted == [TableListLoaded(("orders", "users"))]


@pytest.mark.parametrize("error", [NOT_FOUND, EndpointConnectionError(endpoint_url="http://nowhere")])
def test_refresh_table_list_failure_posts_nothing(error, caplog):
    fetcher, posted = make_fetcher(FakeBotoClient(error=error))
    with caplog.at_level("WARNING"):
        fetcher.refresh_table_list()
    assert posted == []
    assert "listing tables failed" in caplog.text


def test_load_table_posts_converted_table():
    boto = FakeBotoClient(items={"users": USERS})
    fetcher, posted = make_fetcher(boto)
    fetcher.load_table("users")

    assert len(posted) == 1
    event = posted[0]
    assert isinstance(event, TableLoaded)
    assert event.table.headers == ("id", "age")
    assert [str(r.get("id")) for r in event.table.rows] == ["u1", "u2"]
    assert boto.scans == [{"TableName": "users", "Limit": 200}]


def test_load_table_respects_scan_limit():
    items = [{"id": {"N": str(i)}} for i in range(500)]
    fetcher, posted = make_fetcher(FakeBotoClient(items={"big": items}))
    fetcher.load_table("big")
    assert len(posted[0].table.rows) == SCAN_LIMIT


def test_load_table_empty_result_posts_nothing():
    fetcher, posted = make_fetcher(FakeBotoClient(items={"empty": []}))
    fetcher.load_table("empty")
    assert posted == []


def test_load_table_remote_error_posts_nothing():
    fetcher, posted = make_fetcher(FakeBotoClient(error=NOT_FOUND))
    fetcher.load_table("missing")
    assert posted == []


def test_load_table_conversion_error_is_isolated(caplog):
    boto = FakeBotoClient(items={"bad": [{"tags": {"SS": ["a", "b"]}}], "users": USERS})
    fetcher, posted = make_fetcher(boto)

    with caplog.at_level("ERROR"):
        fetcher.load_table("bad")
    fetcher.load_table("users")

    assert "cannot display bad" in caplog.text
    assert len(posted) == 1
    assert posted[0].table.headers == ("id", "age")


def test_results_after_close_are_dropped():
    fetcher, posted = make_fetcher(FakeBotoClient(tables={"a": []}, items={"a": USERS}))
    fetcher.close()
    fetcher.refresh_table_list()
    fetcher.load_table("a")
    assert posted == []


def test_default_spawn_uses_daemon_thread():
    done = threading.Event()
    seen = []
    posted = []

    def post(event):
        seen.append(threading.current_thread())
        posted.append(event)
        done.set()

    fetcher = Fetcher(DynamoClient(client=FakeBotoClient(tables={"a": []})), post)
    fetcher.refresh_table_list()

    assert done.wait(2)
    assert posted == [TableListLoaded(("a",))]
    assert seen[0] is not threading.main_thread()
    assert seen[0].daemon


def test_unexpected_errors_are_logged_not_raised(caplog):
    fetcher, posted = make_fetcher(FakeBotoClient(error=RuntimeError("boom")))

    with caplog.at_level("ERROR"):
        fetcher.refresh_table_list()
        fetcher.load_table("users")

    assert posted == []
    assert "listing tables failed unexpectedly" in caplog.text
    assert "loading users failed unexpectedly" in caplog.text
    assert "RuntimeError: boom" in caplog.text
