"""Real-time infrastructure: in-process subscription hub + WebSocket.

Events flow through two paths:
1. Counter mutation (HTTP) -> MetricsHub.broadcast -> subscribed sockets
2. Browser timer -> GET /listings/{id}/metrics (polling fallback)

The hub is process-local. A restart drops every socket; clients reconnect
and re-subscribe, and polling covers the gap.
"""
