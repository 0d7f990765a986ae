"""The indexer's HTTP application."""

from __future__ import annotations

import sqlite3

from starlette.applications import Starlette

from linx_indexer import account_api, lending_api, points_api


def create_app(connection: sqlite3.Connection) -> Starlette:
    """Build the API serving account, lending and points data from ``connection``.

    Requests are handled off the thread that opened the connection, so it
    should be opened with ``check_same_thread=False``.
    """
    app = Starlette(
        routes=[*account_api.routes(), *lending_api.routes(), *points_api.routes()]
    )
    app.state.db = connection
    return app