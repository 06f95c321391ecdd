"""Builds individual unsigned, ungrouped ledger transactions.

Each builder takes the transaction parameters (fee basis, validity window)
from the caller or, if none are given, from algod. A per-transaction fee
override switches that transaction to a flat fee. Grouping, fee bundling
and signing happen later in the group orchestrator.
"""

from __future__ import annotations

import copy
from collections.abc import Sequence

from algosdk import transaction

from tallysticks.domain.exceptions import ValidationError
from tallysticks.infrastructure.ledger import LedgerClient

# Ledger resource-accounting limits for a single application call
MAX_ACCOUNT_REFERENCES = 4
MAX_TOTAL_REFERENCES = 8

_UINT64_LIMIT = 2**64

AppArg = str | int | bytes


def encode_uint64(value: int) -> bytes:
    """Fixed-width 8-byte big-endian encoding of an application argument."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"Expected an integer argument, got {value!r}")
    if not 0 <= value < _UINT64_LIMIT:
        raise ValidationError(f"Argument {value} does not fit in an unsigned 64-bit integer")
    return value.to_bytes(8, "big")


def encode_app_args(selector: str | None, args: Sequence[AppArg] = ()) -> list[bytes]:
    """Selector as UTF-8 text, integers as uint64, bytes untouched."""
    encoded: list[bytes] = []
    if selector is not None:
        encoded.append(selector.encode("utf-8"))
    for arg in args:
        if isinstance(arg, bytes):
            encoded.append(arg)
        elif isinstance(arg, str):
            encoded.append(arg.encode("utf-8"))
        else:
            encoded.append(encode_uint64(arg))
    return encoded


def validate_references(
    accounts: Sequence[str] = (),
    foreign_assets: Sequence[int] = (),
    foreign_apps: Sequence[int] = (),
) -> None:
    if len(accounts) > MAX_ACCOUNT_REFERENCES:
        raise ValidationError(
            f"{len(accounts)} account references exceed the limit of {MAX_ACCOUNT_REFERENCES}"
        )
    total = len(accounts) + len(foreign_assets) + len(foreign_apps)
    if total > MAX_TOTAL_REFERENCES:
        raise ValidationError(
            f"{total} resource references exceed the limit of {MAX_TOTAL_REFERENCES}"
        )


class TransactionBuilder:
    """Factory for the handful of transaction shapes the protocol uses."""

    def __init__(self, client: LedgerClient) -> None:
        self._client = client

    def suggested_params(self) -> transaction.SuggestedParams:
        return self._client.suggested_params()

    def _params(
        self, params: transaction.SuggestedParams | None, fee: int | None
    ) -> transaction.SuggestedParams:
        sp = params if params is not None else self.suggested_params()
        if fee is None:
            return sp
        if fee < 0:
            raise ValidationError(f"Fee override must be non-negative, got {fee}")
        sp = copy.copy(sp)
        sp.flat_fee = True
        sp.fee = fee
        return sp

    # ------------------------------------------------------------------
    # Assets and payments
    # ------------------------------------------------------------------

    def asset_transfer(
        self,
        sender: str,
        receiver: str,
        asset_id: int,
        amount: int,
        *,
        close_to: str | None = None,
        params: transaction.SuggestedParams | None = None,
        fee: int | None = None,
    ) -> transaction.AssetTransferTxn:
        if amount < 0:
            raise ValidationError(f"Transfer amount must be non-negative, got {amount}")
        return transaction.AssetTransferTxn(
            sender,
            self._params(params, fee),
            receiver,
            amount,
            asset_id,
            close_assets_to=close_to,
        )

    def opt_in_asset(
        self,
        address: str,
        asset_id: int,
        *,
        params: transaction.SuggestedParams | None = None,
        fee: int | None = None,
    ) -> transaction.AssetTransferTxn:
        """A zero-amount transfer to self, which opts ``address`` in to ``asset_id``."""
        return self.asset_transfer(address, address, asset_id, 0, params=params, fee=fee)

    def payment(
        self,
        sender: str,
        receiver: str,
        amount: int,
        *,
        params: transaction.SuggestedParams | None = None,
        fee: int | None = None,
    ) -> transaction.PaymentTxn:
        if amount < 0:
            raise ValidationError(f"Payment amount must be non-negative, got {amount}")
        return transaction.PaymentTxn(sender, self._params(params, fee), receiver, amount)

    # ------------------------------------------------------------------
    # Application calls
    # ------------------------------------------------------------------

    def app_call(
        self,
        sender: str,
        app_id: int,
        selector: str,
        args: Sequence[AppArg] = (),
        *,
        accounts: Sequence[str] = (),
        foreign_assets: Sequence[int] = (),
        foreign_apps: Sequence[int] = (),
        params: transaction.SuggestedParams | None = None,
        fee: int | None = None,
    ) -> transaction.ApplicationNoOpTxn:
        validate_references(accounts, foreign_assets, foreign_apps)
        return transaction.ApplicationNoOpTxn(
            sender,
            self._params(params, fee),
            app_id,
            app_args=encode_app_args(selector, args),
            accounts=list(accounts) or None,
            foreign_apps=list(foreign_apps) or None,
            foreign_assets=list(foreign_assets) or None,
        )

    def app_opt_in(
        self,
        sender: str,
        app_id: int,
        *,
        foreign_apps: Sequence[int] = (),
        params: transaction.SuggestedParams | None = None,
        fee: int | None = None,
    ) -> transaction.ApplicationOptInTxn:
        validate_references(foreign_apps=foreign_apps)
        return transaction.ApplicationOptInTxn(
            sender,
            self._params(params, fee),
            app_id,
            foreign_apps=list(foreign_apps) or None,
        )

    def app_create(
        self,
        sender: str,
        approval_program: bytes,
        clear_program: bytes,
        *,
        global_ints: int,
        global_bytes: int,
        local_ints: int,
        local_bytes: int,
        args: Sequence[AppArg] = (),
        params: transaction.SuggestedParams | None = None,
        fee: int | None = None,
    ) -> transaction.ApplicationCreateTxn:
        return transaction.ApplicationCreateTxn(
            sender,
            self._params(params, fee),
            transaction.OnComplete.NoOpOC,
            approval_program,
            clear_program,
            transaction.StateSchema(num_uints=global_ints, num_byte_slices=global_bytes),
            transaction.StateSchema(num_uints=local_ints, num_byte_slices=local_bytes),
            app_args=encode_app_args(None, args) or None,
        )
