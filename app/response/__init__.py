"""Streaming helpers for pushing queue changes to clients."""

from .streaming import ChangeStreamer, event_payload

__all__ = ["ChangeStreamer", "event_payload"]
