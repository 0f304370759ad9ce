"""Streaming subscription to wallet logs."""

from .signal_dedup import SignalDedup
from .subscription_manager import ConnectionState, SubscriptionManager
from .ws_transport import TransportClosed, TransportNotReady, WebSocketTransport

__all__ = [
    "ConnectionState",
    "SignalDedup",
    "SubscriptionManager",
    "TransportClosed",
    "TransportNotReady",
    "WebSocketTransport",
]
