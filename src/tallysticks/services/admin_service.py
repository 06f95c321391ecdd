"""Admin Service: operator actions on the matching application.

The admin unfreezes investor escrows so they can bid, settles the winning
bid ("action"), resets an invoice that found no match, and runs the
maintenance flow that winds the app back to idle.
"""

from __future__ import annotations

from tallysticks.domain.enums import GlobalKey, ProtocolStage, Selector, ValueKind
from tallysticks.domain.exceptions import TallysticksError, ValidationError
from tallysticks.domain.principal import Admin, Investor
from tallysticks.logging_config import get_logger
from tallysticks.schemas.protocol import ActionReceipt, GroupReceipt, ReclaimResult
from tallysticks.services.base import ProtocolContext, WorkflowService
from tallysticks.services.investor_service import InvestorService
from tallysticks.services.matching_service import MatchingService

logger = get_logger(__name__)


class AdminService(WorkflowService):
    """Operations signed by the matching application's admin."""

    def __init__(self, context: ProtocolContext, admin: Admin) -> None:
        super().__init__(context)
        self._admin = admin
        self._signer = admin.sign_as_self()

    # ------------------------------------------------------------------
    # Escrow access
    # ------------------------------------------------------------------

    def unfreeze(self, investor_address: str) -> GroupReceipt:
        """Opt an investor escrow in to the bidding and access tokens and grant them."""
        tokens = self._escrows.token_ids()
        escrow = self._escrows.investor_escrow(investor_address, tokens)
        identity_token_id = self._global(GlobalKey.IDENTITY_TOKEN_ID)

        opt_in_bid = self._builder.opt_in_asset(escrow.address, tokens.bid_id)
        opt_in_access = self._builder.opt_in_asset(escrow.address, tokens.access_id)
        call = self._builder.app_call(
            self._admin.address,
            self.app_id,
            Selector.UNFREEZE,
            [self._escrows.bounds.minimum_value],
            foreign_assets=[tokens.currency_id, tokens.bid_id, tokens.access_id, identity_token_id],
            accounts=[investor_address, escrow.address],
        )
        receipt = self._submit(
            [
                self._member(opt_in_bid, escrow),
                self._member(opt_in_access, escrow),
                self._member(call, self._signer),
            ],
            fee_payer=2,
            selector=Selector.UNFREEZE,
        )
        logger.info(
            "admin.unfrozen", investor=investor_address, escrow=escrow.address, tx_id=receipt.tx_id
        )
        return receipt

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def action(
        self, investor_address: str | None = None, price: int | None = None
    ) -> ActionReceipt:
        """Settle the invoice in play with the leading escrow.

        The escrow opts in to the invoice's ownership token and pays the
        borrower the invoice price in the same group as the admin's call.

        Args:
            investor_address: Investor expected to lead; defaults to whoever
                the app records as leader.
            price: Amount to pay the borrower; defaults to the invoice price
                at the current bidding timeout.
        """
        global_state = self._guard("action")
        invoice_address = self._from_global(
            global_state, GlobalKey.INVOICE_ADDRESS, ValueKind.ADDRESS
        )
        borrower_address = self._from_global(
            global_state, GlobalKey.OWNER_ADDRESS, ValueKind.ADDRESS
        )
        leader_address = self._from_global(
            global_state, GlobalKey.ESCROW_ADDRESS, ValueKind.ADDRESS
        )
        minter_id = self._from_global(global_state, GlobalKey.MINTER_ID)

        tokens = self._escrows.token_ids()
        if investor_address is None:
            investor_address, escrow = self._escrows.escrow_from_address(leader_address, tokens)
        else:
            escrow = self._escrows.investor_escrow(investor_address, tokens)
            if escrow.address != leader_address:
                raise ValidationError(
                    f"Investor {investor_address} does not lead; escrow {leader_address} does"
                )

        ownership_token_id = self._ownership_token_id(invoice_address, minter_id)
        if price is None:
            bidding_timeout = self._from_global(global_state, GlobalKey.BIDDING_TIMEOUT)
            price = MatchingService(self._ctx).invoice_price(invoice_address, bidding_timeout)

        opt_in_ownership = self._builder.opt_in_asset(escrow.address, ownership_token_id)
        loan = self._builder.asset_transfer(
            escrow.address, borrower_address, tokens.currency_id, price
        )
        call = self._builder.app_call(
            self._admin.address,
            self.app_id,
            Selector.ACTION,
            foreign_assets=[tokens.currency_id, tokens.bid_id, ownership_token_id],
            accounts=[invoice_address, escrow.address, borrower_address],
            foreign_apps=[minter_id],
        )
        receipt = self._submit(
            [
                self._member(opt_in_ownership, escrow),
                self._member(loan, escrow),
                self._member(call, self._signer),
            ],
            fee_payer=2,
            selector=Selector.ACTION,
        )
        logger.info(
            "admin.actioned",
            app_id=self.app_id,
            invoice=invoice_address,
            escrow=escrow.address,
            borrower=borrower_address,
            price=price,
            loan_tx_id=receipt.tx_ids[1],
        )
        return ActionReceipt(
            **receipt.model_dump(),
            price=price,
            investor_address=investor_address,
            escrow_address=escrow.address,
        )

    def reset(self) -> GroupReceipt:
        """Release the invoice in play without a match."""
        global_state = self._guard("reset")
        invoice_address = self._from_global(
            global_state, GlobalKey.INVOICE_ADDRESS, ValueKind.ADDRESS
        )
        borrower_address = self._from_global(
            global_state, GlobalKey.OWNER_ADDRESS, ValueKind.ADDRESS
        )
        minter_id = self._from_global(global_state, GlobalKey.MINTER_ID)
        tokens = self._escrows.token_ids()
        ownership_token_id = self._ownership_token_id(invoice_address, minter_id)

        call = self._builder.app_call(
            self._admin.address,
            self.app_id,
            Selector.RESET,
            foreign_assets=[ownership_token_id, tokens.bid_id, tokens.access_id],
            accounts=[invoice_address, borrower_address],
            foreign_apps=[minter_id],
        )
        receipt = self._submit(
            [self._member(call, self._signer)], fee_payer=0, selector=Selector.RESET
        )
        logger.info("admin.reset", app_id=self.app_id, invoice=invoice_address, tx_id=receipt.tx_id)
        return receipt

    def set_bid_time_limit(self, bid_time_limit: int) -> GroupReceipt:
        call = self._builder.app_call(
            self._admin.address,
            self.app_id,
            Selector.SET_BID_TIME_LIMIT,
            [bid_time_limit],
        )
        receipt = self._submit(
            [self._member(call, self._signer)],
            fee_payer=0,
            selector=Selector.SET_BID_TIME_LIMIT,
        )
        logger.info("admin.bid_time_limit_set", app_id=self.app_id, bid_time_limit=bid_time_limit)
        return receipt

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def reset_app(self) -> list[ReclaimResult]:
        """Wind the app back towards idle.

        Resets the invoice in play, if any, then has every open escrow
        reclaim its bidding token. A failing escrow does not stop the others;
        its error is reported in its result. The app is IDLE afterwards only
        once every outstanding bid has been reclaimed.
        """
        if self._stage() in (ProtocolStage.VERIFIED, ProtocolStage.LEADING):
            self.reset()

        tokens = self._escrows.token_ids()
        investors = InvestorService(self._ctx)
        results: list[ReclaimResult] = []
        for holding in MatchingService(self._ctx).open_escrows():
            try:
                investor_address, _ = self._escrows.escrow_from_address(holding.address, tokens)
                result = investors.reclaim(Investor(address=investor_address))
            except TallysticksError as exc:
                logger.warning("admin.reclaim_failed", escrow=holding.address, error=exc.message)
                result = ReclaimResult(
                    escrow_address=holding.address,
                    error=f"{exc.code}: {exc.message}",
                )
            results.append(result)

        stage = self._stage()
        failed = sum(1 for r in results if r.error)
        logger.info(
            "admin.app_reset",
            app_id=self.app_id,
            escrows=len(results),
            failed=failed,
            stage=stage,
        )
        if stage == ProtocolStage.SETTLING:
            # bidding_timeout stays until the last bidding token is back
            logger.warning("admin.bids_outstanding", app_id=self.app_id)
        return results
