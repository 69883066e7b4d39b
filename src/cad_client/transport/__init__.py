"""HTTP transport: pooled requests sessions."""

from cad_client.transport.http_client import SessionConfig, create_session

__all__ = ["SessionConfig", "create_session"]
