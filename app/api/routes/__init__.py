"""Route modules exposed by the API package."""

from . import display, metrics, ping, reports, settings, stats, tickets

__all__ = ["display", "metrics", "ping", "reports", "settings", "stats", "tickets"]
