"""Storage of liquidity pools."""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence

from linx_indexer.models import NewPool, Pool


class PoolRepository:
    """Reads and writes rows of the ``pools`` table."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection

    def insert_pools(self, pools: Sequence[NewPool]) -> None:
        """Insert pools; a pool whose address is already stored is skipped."""
        if not pools:
            return
        with self._connection:
            self._connection.executemany(
                "INSERT INTO pools (address, token_a, token_b, factory_address)"
                " VALUES (?, ?, ?, ?) ON CONFLICT (address) DO NOTHING",
                [(p.address, p.token_a, p.token_b, p.factory_address) for p in pools],
            )

    def get_pools(self) -> dict[str, Pool]:
        """Return every stored pool keyed by its address."""
        rows = self._connection.execute(
            "SELECT id, address, token_a, token_b, factory_address FROM pools"
        ).fetchall()
        return {row[1]: Pool(*row) for row in rows}