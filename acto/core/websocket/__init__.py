"""
WebSocket layer: connection state, presence binding, chat rooms, and fanout.

One live connection per identity. Heartbeat every 60s; timeout 90s.
"""

from acto.core.websocket.gateway import gateway

__all__ = ["gateway"]
