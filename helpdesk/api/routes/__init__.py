"""Route modules exposed by the API package."""

from . import issues, metrics, ping, tickets

__all__ = ["issues", "metrics", "ping", "tickets"]
