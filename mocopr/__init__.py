"""Model Context Protocol building blocks: JSON-RPC messages, errors, stdio/HTTP/WebSocket transports, security checks and monitoring."""

__version__ = "0.1.0"