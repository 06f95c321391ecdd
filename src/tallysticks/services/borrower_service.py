"""Borrower Service: putting an invoice up for funding and repaying it.

A borrower may act with its own key or through its borrower escrow; every
operation that can go either way takes ``via_escrow``. The invoice itself is
a program-controlled account created by the minting application, so callers
hand it in as a signer.
"""

from __future__ import annotations

from tallysticks.domain.enums import GlobalKey, InvoiceKey, Selector
from tallysticks.domain.pricing import to_currency_units
from tallysticks.domain.principal import Borrower, Signer
from tallysticks.ledger.signers import LogicSigSigner
from tallysticks.logging_config import get_logger
from tallysticks.schemas.protocol import GroupReceipt, RepaymentSnapshot
from tallysticks.services.base import ProtocolContext, WorkflowService
from tallysticks.services.matching_service import MatchingService

logger = get_logger(__name__)

# Escrow opt-ins paid from the initial balance
_INITIAL_OPT_INS = 4


class BorrowerService(WorkflowService):
    """Operations performed by a borrower or its escrow."""

    def __init__(self, context: ProtocolContext, borrower: Borrower) -> None:
        super().__init__(context)
        self._borrower = borrower

    def escrow(self) -> LogicSigSigner:
        return self._escrows.borrower_escrow(self._borrower.address)

    def _actor(self, via_escrow: bool) -> Signer:
        return self._borrower.acting_signer(self._escrows, via_escrow=via_escrow)

    # ------------------------------------------------------------------
    # Escrow setup and funds
    # ------------------------------------------------------------------

    def open_escrow(self) -> LogicSigSigner:
        """Fund the borrower escrow, then opt it in to the currency and both apps."""
        tokens = self._escrows.token_ids()
        minter_id = self._escrows.minter_id()
        escrow = self._escrows.borrower_escrow(self._borrower.address, tokens)
        amount = (
            self._settings.borrower_escrow_minimum_balance
            + _INITIAL_OPT_INS * self._settings.min_txn_fee
        )
        self._fund(
            self._borrower.sign_as_self(), escrow.address, amount, label="borrower.fund_escrow"
        )

        opt_ins = [
            self._builder.opt_in_asset(escrow.address, tokens.currency_id),
            self._builder.app_opt_in(escrow.address, self.app_id),
            self._builder.app_opt_in(escrow.address, minter_id),
        ]
        self._submit(
            [self._member(txn, escrow) for txn in opt_ins],
            fee_payer=0,
            label="borrower.open_escrow",
        )
        logger.info(
            "borrower.escrow_opened", borrower=self._borrower.address, escrow=escrow.address
        )
        return escrow

    def send_funds(self, amount: int) -> GroupReceipt:
        """Move currency from the borrower into its escrow."""
        tokens = self._escrows.token_ids()
        escrow = self._escrows.borrower_escrow(self._borrower.address, tokens)
        transfer = self._builder.asset_transfer(
            self._borrower.address, escrow.address, tokens.currency_id, amount
        )
        return self._submit(
            [self._member(transfer, self._borrower.sign_as_self())],
            fee_payer=0,
            label="borrower.send_funds",
        )

    def withdraw_funds(self, amount: int) -> GroupReceipt:
        """Move currency from the borrower escrow back to the borrower.

        Signed by the escrow alone, so the borrower's key is not needed.
        """
        tokens = self._escrows.token_ids()
        escrow = self._escrows.borrower_escrow(self._borrower.address, tokens)
        transfer = self._builder.asset_transfer(
            escrow.address, self._borrower.address, tokens.currency_id, amount
        )
        return self._submit(
            [self._member(transfer, escrow)],
            fee_payer=0,
            label="borrower.withdraw_funds",
        )

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def opt_in_invoice(self, invoice: Signer, *, via_escrow: bool = False) -> GroupReceipt | None:
        """Opt the invoice account in to the matching application.

        Skipped (returns None) when the invoice already has local state in
        the app. The acting party pays the invoice's fee.
        """
        if self._state.has_local_state(invoice.address, self.app_id):
            logger.debug("borrower.invoice_already_opted_in", invoice=invoice.address)
            return None
        actor = self._actor(via_escrow)
        minter_id = self._escrows.minter_id()
        fee_payment = self._builder.payment(actor.address, invoice.address, 0)
        opt_in = self._builder.app_opt_in(invoice.address, self.app_id, foreign_apps=[minter_id])
        return self._submit(
            [self._member(fee_payment, actor), self._member(opt_in, invoice)],
            fee_payer=0,
            label="borrower.opt_in_invoice",
        )

    def verify(self, invoice: Signer, *, via_escrow: bool = False) -> GroupReceipt:
        """Put the invoice in play: hand its ownership token to the app."""
        self._guard("verify")
        self.opt_in_invoice(invoice, via_escrow=via_escrow)

        actor = self._actor(via_escrow)
        minter_id = self._escrows.minter_id()
        ownership_token_id = self._ownership_token_id(invoice.address, minter_id)

        call = self._builder.app_call(
            actor.address,
            self.app_id,
            Selector.VERIFY,
            foreign_assets=[ownership_token_id],
            foreign_apps=[minter_id],
            accounts=[invoice.address],
        )
        hand_over = self._builder.asset_transfer(
            actor.address, self.app_address, ownership_token_id, 1
        )
        receipt = self._submit(
            [self._member(call, actor), self._member(hand_over, actor)],
            fee_payer=0,
            selector=Selector.VERIFY,
        )
        logger.info(
            "borrower.verified",
            app_id=self.app_id,
            invoice=invoice.address,
            actor=actor.address,
            tx_id=receipt.tx_id,
        )
        return receipt

    # ------------------------------------------------------------------
    # Repayment
    # ------------------------------------------------------------------

    def repay(
        self,
        invoice_address: str,
        investor_escrow_address: str,
        amount: int | None = None,
        *,
        via_escrow: bool = False,
    ) -> GroupReceipt:
        """Repay the investor and return the ownership token to the invoice.

        ``amount`` defaults to the invoice's face value in currency units.
        The investor escrow closes out its ownership-token holding to the
        invoice in the same group.
        """
        actor = self._actor(via_escrow)
        tokens = self._escrows.token_ids()
        minter_id = self._global(GlobalKey.MINTER_ID)
        ownership_token_id = self._ownership_token_id(invoice_address, minter_id)
        _, investor_escrow = self._escrows.escrow_from_address(investor_escrow_address, tokens)
        if amount is None:
            value = self._state.get_local(invoice_address, minter_id, InvoiceKey.VALUE)
            amount = to_currency_units(
                value, self._settings.currency_decimal_scale, self._settings.usd_cents_scale
            )

        call = self._builder.app_call(
            actor.address,
            self.app_id,
            Selector.REPAY,
            foreign_assets=[ownership_token_id, tokens.currency_id],
            foreign_apps=[minter_id],
            accounts=[invoice_address, investor_escrow.address],
        )
        payment = self._builder.asset_transfer(
            actor.address, investor_escrow.address, tokens.currency_id, amount
        )
        return_ownership = self._builder.asset_transfer(
            investor_escrow.address,
            invoice_address,
            ownership_token_id,
            1,
            close_to=invoice_address,
        )
        receipt = self._submit(
            [
                self._member(call, actor),
                self._member(payment, actor),
                self._member(return_ownership, investor_escrow),
            ],
            fee_payer=0,
            selector=Selector.REPAY,
        )
        logger.info(
            "borrower.repaid",
            invoice=invoice_address,
            investor_escrow=investor_escrow.address,
            amount=amount,
            tx_id=receipt.tx_id,
        )
        return receipt

    def repayment_status(self, invoice_address: str) -> RepaymentSnapshot:
        return MatchingService(self._ctx).repayment_status(invoice_address)
