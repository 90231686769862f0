"""HTTP and WebSocket routers mounted by :func:`hexboard.server.app.create_app`."""

__all__ = ["auth_api", "boards_api", "collab_api"]
