"""
Awase realtime: WebSocket connection bookkeeping

API Gateway WebSocket Lambda handlers that track which connections are open
and which group rooms each connection listens to, in DynamoDB.
"""

__version__ = "0.1.0"
