"""Fixtures that put the fake matching app into a given stage.

The fake ledger does not run the matching program, so tests that need an
operation's effects install an ``on_send`` hook that applies them.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from tallysticks.ledger.signers import KeySigner

from tests.conftest import (
    ACCESS_ID,
    APP_ID,
    BID_ID,
    CURRENCY_ID,
    MINTER_ID,
    OWNERSHIP_ID,
    address_bytes,
)

BIDDING_TIMEOUT = 1_700_000_000
YEAR = 31_536_000


def selectors(signed_txns: list[Any]) -> list[bytes]:
    """First application argument of every app call in a submitted group."""
    found = []
    for signed in signed_txns:
        args = getattr(signed.transaction, "app_args", None)
        if args:
            found.append(args[0])
    return found


def mint_invoice(ledger, invoice_address: str, holder: str | None = None) -> None:
    """Record a minted invoice: $100.00 at 10% due a year after bidding closes."""
    ledger.set_local(
        invoice_address,
        MINTER_ID,
        value=10_000,
        interest_rate=1_000,
        due_date=BIDDING_TIMEOUT + YEAR,
        risk_score=20,
        asa_id=OWNERSHIP_ID,
    )
    if holder is not None:
        ledger.set_asset(holder, OWNERSHIP_ID, 1)


def put_in_play(ledger, borrower_address: str, invoice_address: str) -> None:
    """VERIFIED: the invoice's ownership token is held by the app."""
    ledger.set_global(
        APP_ID,
        owner_address=address_bytes(borrower_address),
        invoice_address=address_bytes(invoice_address),
        bidding_timeout=BIDDING_TIMEOUT,
    )


def take_lead(ledger, escrow_address: str, timestamp: int = BIDDING_TIMEOUT - 60) -> None:
    """LEADING: ``escrow_address`` holds the best bid."""
    ledger.set_global(
        APP_ID, escrow_address=address_bytes(escrow_address), leading_timestamp=timestamp
    )


def close_round(ledger) -> None:
    """SETTLING: the invoice is settled or reset, bids are not all back yet."""
    ledger.clear_global(
        APP_ID, "owner_address", "invoice_address", "escrow_address", "leading_timestamp"
    )
    ledger.set_global(APP_ID, bidding_timeout=BIDDING_TIMEOUT)


def register_escrow(
    ledger, escrow_address: str, investor_address: str, timestamp: int = 0
) -> None:
    """Local state the matching app writes when an investor escrow opts in."""
    ledger.set_local(
        escrow_address,
        APP_ID,
        investor_address=address_bytes(investor_address),
        timestamp=timestamp,
    )


def open_investor_escrow(context, investor_address: str, timestamp: int = 0):
    """An investor escrow, opted in, unfrozen and with spare microalgos."""
    escrow = context.escrows.investor_escrow(investor_address)
    ledger = context.client
    register_escrow(ledger, escrow.address, investor_address, timestamp)
    ledger.set_algos(escrow.address, 1_000_000, min_balance=435_000)
    ledger.set_asset(escrow.address, CURRENCY_ID, 500_000_000)
    ledger.set_asset(escrow.address, BID_ID, 1)
    ledger.set_asset(escrow.address, ACCESS_ID, 1)
    return escrow


def has_bid(ledger, escrow_address: str) -> None:
    """The escrow's bidding token sits with the app until it reclaims."""
    ledger.set_asset(escrow_address, BID_ID, 0)


def local_timestamp(ledger, escrow_address: str) -> int:
    for app_state in ledger.account(escrow_address)["apps-local-state"]:
        if app_state["id"] == APP_ID:
            return app_state["_values"]["timestamp"]
    raise KeyError(escrow_address)


def apply_bids(ledger) -> Callable[[list[Any]], None]:
    """``on_send`` hook that keeps the bid with the lowest local timestamp."""

    def hook(txns: list[Any]) -> None:
        if b"bid" not in selectors(txns):
            return
        escrow_address = txns[0].transaction.sender
        ledger.set_asset(escrow_address, BID_ID, 0)
        timestamp = local_timestamp(ledger, escrow_address)
        leading = ledger.globals[APP_ID].get("leading_timestamp")
        if leading is None or timestamp < leading:
            take_lead(ledger, escrow_address, timestamp=timestamp)

    return hook


def apply_reclaims(
    ledger, outstanding: int = 1, revoke: bool = False
) -> Callable[[list[Any]], None]:
    """``on_send`` hook that hands bidding tokens back, or revokes access.

    ``bidding_timeout`` is cleared once ``outstanding`` reclaims have landed.
    """
    remaining = [outstanding]

    def hook(txns: list[Any]) -> None:
        if b"reclaim" not in selectors(txns):
            return
        escrow_address = txns[0].transaction.sender
        if revoke:
            ledger.set_asset(escrow_address, ACCESS_ID, 0)
        else:
            ledger.set_asset(escrow_address, BID_ID, 1)
        remaining[0] -= 1
        if remaining[0] == 0:
            ledger.clear_global(APP_ID, "bidding_timeout")

    return hook


@pytest.fixture
def invoice_address(invoice_key: KeySigner) -> str:
    return invoice_key.address


@pytest.fixture
def investor_escrow(context, investor_key):
    """The investor's escrow, opted in, unfrozen and with spare microalgos."""
    return open_investor_escrow(context, investor_key.address)
