"""Realtime fanout of message events to subscribed connections."""

from chatly.services.realtime.fanout import ConnectionRegistry, RealtimeFanout, get_fanout

__all__ = ["ConnectionRegistry", "RealtimeFanout", "get_fanout"]
