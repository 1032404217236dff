"""Route modules for the API."""

from . import backups

__all__ = ["backups"]
