"""Key-value substrate shared by the feed cache and the rate limiter."""

import threading
import time
from collections.abc import Callable
from typing import Protocol

import boto3
from botocore.exceptions import ClientError

from .config import StoreConfig
from .logging_config import create_execution_logger


class KeyValueStore(Protocol):
    """The two operations the cache and rate limiter need from a store."""

    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str, ttl_seconds: int) -> None: ...


class MemoryStore:
    """In-process store with per-key expiry, for tests and local runs."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._data: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self.clock() >= expires_at:
                del self._data[key]
                return None
            return value

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._data[key] = (value, self.clock() + ttl_seconds)

    def keys(self) -> list[str]:
        """Return the keys currently held, expired or not."""
        with self._lock:
            return list(self._data)


class DynamoDBStore:
    """Key-value store backed by a DynamoDB table with a TTL attribute.

    The table uses a string hash key ``key``; values live in ``value`` and
    the expiry timestamp (epoch seconds) in ``ttl``.
    """

    def __init__(self, config: StoreConfig, execution_id: str | None = None):
        """Initialize the store with DynamoDB configuration.

        Args:
            config: Table name and AWS region
            execution_id: Execution ID for logging context
        """
        self.table_name = config.table_name
        self.aws_region = config.aws_region
        self.logger = create_execution_logger("kv_store", execution_id)
        self.dynamodb = boto3.resource("dynamodb", region_name=config.aws_region)
        self.table = self.dynamodb.Table(config.table_name)

        self.logger.info(
            "DynamoDBStore initialized",
            table_name=config.table_name,
            aws_region=config.aws_region,
        )

    def get(self, key: str) -> str | None:
        """Read a value, treating items past their TTL as absent.

        DynamoDB removes expired items lazily, so the ``ttl`` attribute is
        checked here as well.
        """
        try:
            response = self.table.get_item(Key={"key": key})
        except ClientError as e:
            self.logger.error(
                f"Error reading key {key}: {e}", cache_key=key, error=str(e)
            )
            raise

        item = response.get("Item")
        if item is None:
            return None

        expires_at = item.get("ttl")
        if expires_at is not None and int(expires_at) <= int(time.time()):
            self.logger.debug("Ignoring expired item", cache_key=key)
            return None

        value = item.get("value")
        return str(value) if value is not None else None

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Write a value with an absolute expiry ``ttl_seconds`` from now."""
        ttl_timestamp = int(time.time()) + int(ttl_seconds)
        try:
            self.table.put_item(
                Item={"key": key, "value": value, "ttl": ttl_timestamp}
            )
        except ClientError as e:
            self.logger.error(
                f"Error writing key {key}: {e}", cache_key=key, error=str(e)
            )
            raise

        self.logger.debug(
            "Stored item in DynamoDB", cache_key=key, ttl_timestamp=ttl_timestamp
        )
