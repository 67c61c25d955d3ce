"""Backend connections (local, FTP, S3) and their factory."""

from .base import BackendConnection
from .factory import ConnectionFactory
from .local import LocalConnection

__all__ = ["BackendConnection", "ConnectionFactory", "LocalConnection"]
