"""Output sinks for sample rows."""

from .base import BaseSink
from .file import FileSink

__all__ = ["BaseSink", "FileSink"]
