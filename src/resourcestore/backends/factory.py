"""Factory for creating and caching backend connections."""

import hashlib
import json
import logging
import threading
from typing import Callable, Dict

from ..errors import ConfigurationError, UnknownDriverError
from .base import BackendConnection
from .ftp import FtpConnection
from .local import LocalConnection

logger = logging.getLogger(__name__)

Constructor = Callable[[dict], BackendConnection]


def _create_s3(options: dict) -> BackendConnection:
    # boto3 is only imported when an S3 connection is actually requested
    from .s3 import S3Connection
    return S3Connection.from_options(options)


DRIVERS: Dict[str, Constructor] = {
    "local": LocalConnection.from_options,
    "ftp": FtpConnection.from_options,
    "s3": _create_s3,
}


def connection_identifier(driver_name: str, options: dict) -> str:
    """Stable key for a connection definition."""
    payload = json.dumps(options, sort_keys=True, default=str)
    return hashlib.sha1(f"{driver_name.lower()}-{payload}".encode("utf-8")).hexdigest()


class ConnectionFactory:
    """
    Creates backend connections and keeps one per (driver, options) pair.

    The cache lives as long as the factory; close() tears it down. Creation of
    a new entry is serialized so concurrent first use builds one connection,
    lookups of existing entries take no lock.
    """

    def __init__(self, drivers: Dict[str, Constructor] = None):
        self._drivers: Dict[str, Constructor] = dict(drivers or DRIVERS)
        self._connections: Dict[str, BackendConnection] = {}
        self._lock = threading.Lock()

    @property
    def drivers(self) -> list:
        return sorted(self._drivers)

    def register_driver(self, name: str, constructor: Constructor) -> None:
        """Add or replace the constructor for a driver name."""
        self._drivers[name.lower()] = constructor

    def create(self, driver_name: str, options: dict) -> BackendConnection:
        """
        Return the connection for driver_name and options, creating it once.

        Args:
            driver_name: Driver name, case-insensitive ("local", "ftp", "s3")
            options: Driver specific options

        Returns:
            Cached BackendConnection

        Raises:
            ConfigurationError: If the driver is unknown or options are missing
        """
        if not driver_name:
            raise ConfigurationError("A driver name is required to create a connection")
        if not isinstance(options, dict):
            raise ConfigurationError(f"Options for driver '{driver_name}' must be a mapping")

        key = connection_identifier(driver_name, options)
        connection = self._connections.get(key)
        if connection is not None:
            return connection

        with self._lock:
            # Re-check after acquiring lock
            connection = self._connections.get(key)
            if connection is not None:
                return connection

            constructor = self._drivers.get(driver_name.lower())
            if constructor is None:
                raise UnknownDriverError(driver_name, list(self._drivers))
            connection = constructor(options)
            self._connections[key] = connection
            logger.debug("Created %s connection %s", driver_name, key[:12])
        return connection

    def close(self) -> None:
        """Release resources held by cached connections and clear the cache."""
        with self._lock:
            for key, connection in self._connections.items():
                close = getattr(connection, "close", None)
                if close is None:
                    continue
                try:
                    close()
                except Exception as e:
                    logger.warning("Could not close connection %s: %s", key[:12], e)
            self._connections.clear()

    def __len__(self) -> int:
        return len(self._connections)

