"""Matching Service: read-only protocol queries.

Everything here is a fresh read of ledger state; nothing is cached. The
other services use these queries to decide what to build, and the CLI uses
them to report status.
"""

from __future__ import annotations

from algosdk.error import IndexerHTTPError

from tallysticks.domain.enums import (
    REPAID_OWNERSHIP_BALANCE,
    GlobalKey,
    InvoiceKey,
    ProtocolStage,
    RepaymentStatus,
    ValueKind,
)
from tallysticks.domain.exceptions import TransientQueryError, ValidationError
from tallysticks.domain.pricing import invoice_price
from tallysticks.logging_config import get_logger
from tallysticks.schemas.protocol import (
    EscrowHolding,
    InvoiceTerms,
    ProtocolSnapshot,
    RepaymentSnapshot,
)
from tallysticks.services.base import WorkflowService

logger = get_logger(__name__)

INDEXER_PAGE_SIZE = 1000


class MatchingService(WorkflowService):
    """Queries over the matching application and the accounts around it."""

    # ------------------------------------------------------------------
    # Stage
    # ------------------------------------------------------------------

    def stage(self) -> ProtocolStage:
        return self._stage()

    def snapshot(self) -> ProtocolSnapshot:
        app_id = self.app_id
        find = self._state.find_global
        return ProtocolSnapshot(
            app_id=app_id,
            stage=self._stage(),
            owner_address=find(app_id, GlobalKey.OWNER_ADDRESS, ValueKind.ADDRESS),
            invoice_address=find(app_id, GlobalKey.INVOICE_ADDRESS, ValueKind.ADDRESS),
            escrow_address=find(app_id, GlobalKey.ESCROW_ADDRESS, ValueKind.ADDRESS),
            leading_timestamp=find(app_id, GlobalKey.LEADING_TIMESTAMP),
            bidding_timeout=find(app_id, GlobalKey.BIDDING_TIMEOUT),
        )

    def is_app_set_up(self) -> bool:
        return bool(self._state.created_assets(self.app_address))

    def is_locked(self) -> bool:
        """True while a bidding window is open or bids are still being reclaimed."""
        return self._state.has_global(self.app_id, GlobalKey.BIDDING_TIMEOUT)

    def is_reset(self) -> bool:
        return not self._state.has_global(self.app_id, GlobalKey.OWNER_ADDRESS)

    def all_bids_collected(self) -> bool:
        """True once every bidding token is back in the app account."""
        tokens = self._escrows.token_ids()
        held = self._state.balance(self.app_address, tokens.bid_id) or 0
        return held == self._global(GlobalKey.TOKEN_RESERVE_SIZE)

    def is_winner_found(self) -> bool:
        has_leader = self._state.has_global(self.app_id, GlobalKey.ESCROW_ADDRESS)
        return has_leader and self.all_bids_collected()

    def leader(self) -> str | None:
        """Address of the leading escrow, or None if nobody has bid."""
        return self._state.find_global(self.app_id, GlobalKey.ESCROW_ADDRESS, ValueKind.ADDRESS)

    def leading_investor(self) -> str | None:
        escrow_address = self.leader()
        if escrow_address is None:
            return None
        return self._escrows.investor_of(escrow_address)

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    def invoice_terms(self, invoice_address: str) -> InvoiceTerms:
        minter_id = self._escrows.minter_id()
        local = self._state.get_local
        return InvoiceTerms(
            address=invoice_address,
            value=local(invoice_address, minter_id, InvoiceKey.VALUE),
            interest_rate=local(invoice_address, minter_id, InvoiceKey.INTEREST_RATE),
            due_date=local(invoice_address, minter_id, InvoiceKey.DUE_DATE),
            risk_score=self._state.find_local(invoice_address, minter_id, InvoiceKey.RISK_SCORE),
            ownership_token_id=local(invoice_address, minter_id, InvoiceKey.OWNERSHIP_TOKEN_ID),
        )

    def invoice_price(self, invoice_address: str, bidding_timeout: int | None = None) -> int:
        """Price, in currency base units, an investor pays for the invoice.

        ``bidding_timeout`` defaults to the app's current bidding timeout.
        """
        terms = self.invoice_terms(invoice_address)
        if bidding_timeout is None:
            bidding_timeout = self._global(GlobalKey.BIDDING_TIMEOUT)
        settings = self._settings
        return invoice_price(
            terms.value,
            terms.interest_rate,
            terms.due_date,
            bidding_timeout,
            currency_decimal_scale=settings.currency_decimal_scale,
            usd_cents_scale=settings.usd_cents_scale,
            interest_scale=settings.interest_scale,
            seconds_in_year=settings.seconds_in_year,
        )

    def repayment_status(self, invoice_address: str) -> RepaymentSnapshot:
        """Observed repayment state of a matched invoice."""
        minter_id = self._escrows.minter_id()
        token_id = self._ownership_token_id(invoice_address, minter_id)
        balance = self._state.balance(invoice_address, token_id) or 0
        if balance == REPAID_OWNERSHIP_BALANCE:
            status = RepaymentStatus.REPAID
        elif balance == 1:
            status = RepaymentStatus.OUTSTANDING
        else:
            status = RepaymentStatus.UNMATCHED
        return RepaymentSnapshot(
            invoice_address=invoice_address,
            ownership_token_id=token_id,
            balance=balance,
            status=status,
        )

    # ------------------------------------------------------------------
    # Escrows
    # ------------------------------------------------------------------

    def has_access_token(self, address: str) -> bool:
        tokens = self._escrows.token_ids()
        return self._state.balance(address, tokens.access_id) == 1

    def has_bidding_token(self, address: str) -> bool:
        tokens = self._escrows.token_ids()
        return self._state.balance(address, tokens.bid_id) == 1

    def open_escrows(self) -> list[EscrowHolding]:
        """Accounts holding exactly one access token, according to the indexer.

        The indexer lags the ledger by a few rounds; callers re-check each
        escrow against algod before acting on it.
        """
        indexer = self._ctx.indexer
        if indexer is None:
            raise ValidationError("Listing open escrows needs an indexer client")

        access_id = self._escrows.token_ids().access_id
        holdings: list[EscrowHolding] = []
        next_page: str | None = None
        while True:
            try:
                page = indexer.asset_balances(
                    access_id,
                    limit=INDEXER_PAGE_SIZE,
                    next_page=next_page,
                    min_balance=0,
                    max_balance=2,
                )
            except IndexerHTTPError as exc:
                raise TransientQueryError(f"Listing holders of {access_id} failed: {exc}") from exc
            for entry in page.get("balances", []):
                if entry.get("amount") == 1:
                    holdings.append(EscrowHolding(address=entry["address"], amount=1))
            next_page = page.get("next-token")
            if not next_page or not page.get("balances"):
                break

        logger.info("matching.open_escrows", app_id=self.app_id, count=len(holdings))
        return holdings
