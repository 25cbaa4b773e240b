# Signaling relay package
#
# Provides:
#  - Peer registry with unique identities and a fixed capacity
#  - Admission control (per-source rate limiting, oldest-first eviction)
#  - Message routing (broadcast-to-others and directed delivery)
#  - FastAPI WebSocket server and an asyncio client
#
# See signal_relay/server.py for the app entry point.
