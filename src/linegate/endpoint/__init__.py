"""HTTP and WebSocket endpoint module for linegate.

Serves the gateway to network clients: a WebSocket command channel, a
diagnostic info endpoint, and an optional static file mount for a
browser client.
"""
