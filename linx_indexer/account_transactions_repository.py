"""Storage of per-account transactions: transfers, swaps and contract calls."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from typing import Any, Union

from linx_indexer.models import (
    AccountTransaction,
    NewAccountTransaction,
    NewContractCallTransaction,
    NewSwapTransaction,
    NewTransferTransaction,
    SwapDetails,
    SwapTransaction,
    TransferDetails,
    TransferTransaction,
)

logger = logging.getLogger(__name__)

AccountTransactionDetails = Union[TransferTransaction, SwapTransaction]

_ACCOUNT_COLUMNS = "id, address, tx_type, from_group, to_group, block_height, tx_id, timestamp"
_CHUNK_SIZE = 500

_DetailRow = Callable[[Any, int], "tuple[str, tuple[Any, ...]]"]


def _chunks(values: Sequence[int], size: int = _CHUNK_SIZE) -> Iterable[Sequence[int]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


def _transfer_row(dto: NewTransferTransaction, account_id: int) -> tuple[str, tuple[Any, ...]]:
    transfer = dto.transfer
    return (
        "INSERT INTO transfers (account_transaction_id, token_id, from_address, to_address,"
        " amount, tx_id) VALUES (?, ?, ?, ?, ?, ?)",
        (
            account_id,
            transfer.token_id,
            transfer.from_address,
            transfer.to_address,
            transfer.amount,
            dto.account_transaction.tx_id,
        ),
    )


def _contract_call_row(
    dto: NewContractCallTransaction, account_id: int
) -> tuple[str, tuple[Any, ...]]:
    return (
        "INSERT INTO contract_calls (account_transaction_id, contract_address, tx_id)"
        " VALUES (?, ?, ?)",
        (account_id, dto.contract_call.contract_address, dto.account_transaction.tx_id),
    )


def _swap_row(dto: NewSwapTransaction, account_id: int) -> tuple[str, tuple[Any, ...]]:
    swap = dto.swap
    return (
        "INSERT INTO swaps (account_transaction_id, token_in, token_out, amount_in,"
        " amount_out, pool_address, tx_id) VALUES (?, ?, ?, ?, ?, ?, ?)",
        (
            account_id,
            swap.token_in,
            swap.token_out,
            swap.amount_in,
            swap.amount_out,
            swap.pool_address,
            swap.tx_id,
        ),
    )


class AccountTransactionRepository:
    """Reads and writes account transactions together with their details."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection

    # ------------------------------------------------------------ writing

    def insert_transfers(self, dtos: Sequence[NewTransferTransaction]) -> None:
        """Store transfers; a transfer that cannot be stored is skipped whole."""
        self._insert_each(dtos, "transfer", "transfer", _transfer_row)

    def insert_contract_calls(self, dtos: Sequence[NewContractCallTransaction]) -> None:
        """Store contract calls; a call that cannot be stored is skipped whole."""
        self._insert_each(dtos, "contract_call", "contract call", _contract_call_row)

    def insert_swaps(self, dtos: Sequence[NewSwapTransaction]) -> None:
        """Store swaps; a swap that cannot be stored is skipped whole."""
        self._insert_each(dtos, "swap", "swap", _swap_row)

    def _insert_each(self, dtos: Sequence[Any], tx_type: str, label: str, detail_row: _DetailRow) -> None:
        for dto in dtos:
            try:
                with self._connection:
                    account_id = self._insert_account_transaction(dto.account_transaction, tx_type)
                    sql, params = detail_row(dto, account_id)
                    self._connection.execute(sql, params)
            except sqlite3.Error as exc:
                logger.debug(
                    "Failed to insert %s for tx_id %s: %s",
                    label,
                    dto.account_transaction.tx_id,
                    exc,
                )

    def _insert_account_transaction(self, account_tx: NewAccountTransaction, tx_type: str) -> int:
        cursor = self._connection.execute(
            "INSERT INTO account_transactions (address, tx_type, from_group, to_group,"
            " block_height, tx_id, timestamp) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                account_tx.address,
                tx_type,
                account_tx.from_group,
                account_tx.to_group,
                account_tx.block_height,
                account_tx.tx_id,
                account_tx.timestamp,
            ),
        )
        return cursor.lastrowid

    # ------------------------------------------------------------ reading

    def get_account_transactions(
        self, address: str, limit: int, offset: int
    ) -> list[AccountTransactionDetails]:
        """Return an address's transfers and swaps, newest first."""
        rows = self._connection.execute(
            f"SELECT {_ACCOUNT_COLUMNS} FROM account_transactions WHERE address = ?"
            " ORDER BY timestamp DESC LIMIT ? OFFSET ?",
            (address, limit, offset),
        ).fetchall()
        account_txs = [AccountTransaction(*row) for row in rows]
        if not account_txs:
            return []

        ids = [tx.id for tx in account_txs]
        transfers = self._transfers_by_account(ids)
        swaps = self._swaps_by_account(ids)

        details: list[AccountTransactionDetails] = []
        for account_tx in account_txs:
            if account_tx.tx_type == "transfer" and account_tx.id in transfers:
                details.append(TransferTransaction(account_tx, transfers[account_tx.id]))
            elif account_tx.tx_type == "swap" and account_tx.id in swaps:
                details.append(SwapTransaction(account_tx, swaps[account_tx.id]))
        return details

    def get_swaps_in_period(self, start_time: datetime, end_time: datetime) -> list[SwapTransaction]:
        """Return swaps whose timestamp is at or after ``start_time`` and before ``end_time``."""
        rows = self._connection.execute(
            f"SELECT {_ACCOUNT_COLUMNS} FROM account_transactions"
            " WHERE tx_type = 'swap' AND timestamp >= ? AND timestamp < ?",
            (start_time, end_time),
        ).fetchall()
        account_txs = [AccountTransaction(*row) for row in rows]
        if not account_txs:
            return []

        swaps = self._swaps_by_account([tx.id for tx in account_txs])
        return [
            SwapTransaction(account_tx, swaps[account_tx.id])
            for account_tx in account_txs
            if account_tx.id in swaps
        ]

    def _rows_for_accounts(self, columns: str, table: str, ids: Sequence[int]) -> list[Any]:
        rows: list[Any] = []
        for chunk in _chunks(ids):
            placeholders = ", ".join("?" for _ in chunk)
            rows.extend(
                self._connection.execute(
                    f"SELECT {columns} FROM {table}"
                    f" WHERE account_transaction_id IN ({placeholders})",
                    tuple(chunk),
                ).fetchall()
            )
        return rows

    def _transfers_by_account(self, ids: Sequence[int]) -> dict[int, TransferDetails]:
        rows = self._rows_for_accounts(
            "id, account_transaction_id, token_id, from_address, to_address, amount",
            "transfers",
            ids,
        )
        return {
            row[1]: TransferDetails(
                token_id=row[2],
                from_address=row[3],
                to_address=row[4],
                amount=row[5],
                id=row[0],
            )
            for row in rows
        }

    def _swaps_by_account(self, ids: Sequence[int]) -> dict[int, SwapDetails]:
        rows = self._rows_for_accounts(
            "id, account_transaction_id, token_in, token_out, amount_in, amount_out,"
            " pool_address, tx_id",
            "swaps",
            ids,
        )
        return {
            row[1]: SwapDetails(
                token_in=row[2],
                token_out=row[3],
                amount_in=row[4],
                amount_out=row[5],
                pool_address=row[6],
                tx_id=row[7],
                id=row[0],
            )
            for row in rows
        }