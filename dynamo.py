# dynamo.py
"""
DynamoDB access for the dashboard: a thin boto3 client wrapper plus the
background fetcher that turns list/scan calls into dashboard events.

Credentials and profile selection are left to boto3's usual environment
variables (AWS_PROFILE, AWS_REGION, AWS_ACCESS_KEY_ID, ...).

Fetches run on daemon threads and are never cancelled or joined. Starting a
second load while one is in flight is fine; whichever finishes last is what the
dashboard shows. After close() any late results are dropped on the floor.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app_state import Event, TableListLoaded, TableLoaded
from item_values import ConversionError, Table

logger = logging.getLogger(__name__)

SCAN_LIMIT = 200

REMOTE_ERRORS = (BotoCoreError, ClientError)


class DynamoClient:
    def __init__(self, endpoint: Optional[str] = None, region: Optional[str] = None, client: Any = None):
        if client is None:
            kwargs: Dict[str, Any] = {}
            if endpoint:
                kwargs["endpoint_url"] = endpoint
            if region:
                kwargs["region_name"] = region
            client = boto3.client("dynamodb", **kwargs)
        self.client = client

    def list_table_names(self) -> List[str]:
        resp = self.client.list_tables()
        return list(resp.get("TableNames", []))

    def scan(self, table_name: str, limit: Optional[int] = SCAN_LIMIT) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"TableName": table_name}
        if limit:
            kwargs["Limit"] = limit
        return self.client.scan(**kwargs)


def scan_items(client: DynamoClient, table_name: str, limit: Optional[int] = SCAN_LIMIT) -> List[Dict[str, Any]]:
    return list(client.scan(table_name, limit).get("Items", []))


def _spawn_daemon(fn: Callable[[], None]) -> None:
    threading.Thread(target=fn, daemon=True).start()


# --------------------
# Background fetcher
# --------------------

class Fetcher:
    def __init__(
        self,
        client: DynamoClient,
        post: Callable[[Event], None],
        scan_limit: int = SCAN_LIMIT,
        spawn: Callable[[Callable[[], None]], None] = _spawn_daemon,
    ):
        self.client = client
        self.post = post
        self.scan_limit = scan_limit
        self.spawn = spawn
        self.closed = threading.Event()

    def close(self) -> None:
        self.closed.set()

    def _emit(self, event: Event) -> None:
        if self.closed.is_set():
            logger.debug("dropping %s after close", type(event).__name__)
            return
        self.post(event)

    def refresh_table_list(self) -> None:
        self.spawn(self._refresh_table_list)

    def load_table(self, name: str) -> None:
        self.spawn(lambda: self._load_table(name))

    def _refresh_table_list(self) -> None:
        try:
            names = self.client.list_table_names()
        except REMOTE_ERRORS as e:
            logger.warning("listing tables failed: %s", e)
            return
        except Exception:
            logger.exception("listing tables failed unexpectedly")
            return
        logger.debug("listed %d tables", len(names))
        self._emit(TableListLoaded(tuple(names)))

    def _load_table(self, name: str) -> None:
        try:
            items = scan_items(self.client, name, self.scan_limit)
            if not items:
                logger.info("scan of %s returned no items", name)
                return
            table = Table.from_items(items)
        except REMOTE_ERRORS as e:
            logger.warning("scanning %s failed: %s", name, e)
            return
        except ConversionError as e:
            logger.error("cannot display %s: %s", name, e)
            return
        except Exception:
            logger.exception("loading %s failed unexpectedly", name)
            return
        logger.debug("loaded %d rows from %s", len(table.rows), name)
        self._emit(TableLoaded(table))
