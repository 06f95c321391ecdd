"""Investor Service: lifecycle of an investor escrow.

An investor's funds and protocol tokens live in an escrow whose address is
derived from the investor's address and the app's token ids. Operations the
investor performs itself (invest, withdraw, freeze) need the investor's key;
bid and reclaim are signed by the escrow program alone.
"""

from __future__ import annotations

from tallysticks.domain.enums import (
    GlobalKey,
    ProtocolStage,
    ReclaimOutcome,
    Selector,
    ValueKind,
)
from tallysticks.domain.exceptions import TallysticksError, ValidationError
from tallysticks.domain.principal import Investor
from tallysticks.ledger.signers import LogicSigSigner
from tallysticks.logging_config import get_logger
from tallysticks.schemas.protocol import BidReceipt, GroupReceipt, ReclaimResult
from tallysticks.services.base import WorkflowService

logger = get_logger(__name__)

# Escrow opt-ins paid from the initial balance: currency, bidding token,
# access token and the matching application
_INITIAL_OPT_INS = 4


class InvestorService(WorkflowService):
    """Operations performed by, or through the escrow of, an investor."""

    def escrow_of(self, investor: Investor) -> LogicSigSigner:
        return self._escrows.investor_escrow(investor.address)

    # ------------------------------------------------------------------
    # Escrow setup and funds
    # ------------------------------------------------------------------

    def open_escrow(self, investor: Investor) -> LogicSigSigner:
        """Fund a new escrow, then opt it in to the currency and the app.

        Funding is its own atomic step; the opt-in group is paid by the
        escrow from that balance.
        """
        tokens = self._escrows.token_ids()
        escrow = self._escrows.investor_escrow(investor.address, tokens)
        amount = (
            self._settings.investor_escrow_initial_balance
            + _INITIAL_OPT_INS * self._settings.min_txn_fee
        )
        self._fund(investor.sign_as_self(), escrow.address, amount, label="investor.fund_escrow")

        opt_in_currency = self._builder.opt_in_asset(escrow.address, tokens.currency_id)
        opt_in_app = self._builder.app_opt_in(escrow.address, self.app_id)
        self._submit(
            [self._member(opt_in_currency, escrow), self._member(opt_in_app, escrow)],
            fee_payer=0,
            label="investor.open_escrow",
        )
        logger.info(
            "investor.escrow_opened",
            app_id=self.app_id,
            investor=investor.address,
            escrow=escrow.address,
        )
        return escrow

    def invest(self, investor: Investor, amount: int) -> GroupReceipt:
        """Move ``amount`` of currency from the investor into its escrow."""
        tokens = self._escrows.token_ids()
        escrow = self._escrows.investor_escrow(investor.address, tokens)
        transfer = self._builder.asset_transfer(
            investor.address, escrow.address, tokens.currency_id, amount
        )
        receipt = self._submit(
            [self._member(transfer, investor.sign_as_self())],
            fee_payer=0,
            label="investor.invest",
        )
        logger.info(
            "investor.invested", investor=investor.address, amount=amount, tx_id=receipt.tx_id
        )
        return receipt

    def withdraw(self, investor: Investor, amount: int) -> GroupReceipt:
        """Move ``amount`` of currency from the escrow back to the investor."""
        tokens = self._escrows.token_ids()
        escrow = self._escrows.investor_escrow(investor.address, tokens)
        transfer = self._builder.asset_transfer(
            escrow.address, investor.address, tokens.currency_id, amount
        )
        call = self._builder.app_call(
            investor.address,
            self.app_id,
            Selector.WITHDRAW,
            foreign_assets=[tokens.currency_id, tokens.bid_id, tokens.access_id],
            accounts=[escrow.address],
        )
        receipt = self._submit(
            [self._member(transfer, escrow), self._member(call, investor.sign_as_self())],
            fee_payer=1,
            selector=Selector.WITHDRAW,
        )
        logger.info(
            "investor.withdrawn", investor=investor.address, amount=amount, tx_id=receipt.tx_id
        )
        return receipt

    def fund_reserve(self, investor: Investor, amount: int) -> GroupReceipt:
        """Top up the escrow's microalgo reserve that pays for bids."""
        escrow = self.escrow_of(investor)
        return self._fund(
            investor.sign_as_self(), escrow.address, amount, label="investor.fund_reserve"
        )

    def freeze(self, investor: Investor) -> GroupReceipt:
        """Hand the escrow's bidding and access tokens back to the app."""
        tokens = self._escrows.token_ids()
        escrow = self._escrows.investor_escrow(investor.address, tokens)
        identity_token_id = self._global(GlobalKey.IDENTITY_TOKEN_ID)
        return_bid = self._builder.asset_transfer(
            escrow.address, self.app_address, tokens.bid_id, 1
        )
        return_access = self._builder.asset_transfer(
            escrow.address, self.app_address, tokens.access_id, 1
        )
        call = self._builder.app_call(
            investor.address,
            self.app_id,
            Selector.FREEZE,
            foreign_assets=[identity_token_id],
        )
        receipt = self._submit(
            [
                self._member(return_bid, escrow),
                self._member(return_access, escrow),
                self._member(call, investor.sign_as_self()),
            ],
            fee_payer=2,
            selector=Selector.FREEZE,
        )
        logger.info("investor.frozen", investor=investor.address, escrow=escrow.address)
        return receipt

    # ------------------------------------------------------------------
    # Bidding
    # ------------------------------------------------------------------

    def bid(self, investor: Investor, invoice_address: str) -> BidReceipt:
        """Bid on the invoice in play with the escrow's bidding token.

        The app keeps the earlier bid when timestamps tie, so whether this
        bid leads is only known after confirmation.
        """
        global_state = self._guard("bid")
        in_play = self._from_global(global_state, GlobalKey.INVOICE_ADDRESS, ValueKind.ADDRESS)
        if in_play != invoice_address:
            raise ValidationError(f"Invoice {invoice_address} is not in play; {in_play} is")
        minter_id = self._from_global(global_state, GlobalKey.MINTER_ID)

        tokens = self._escrows.token_ids()
        escrow = self._escrows.investor_escrow(investor.address, tokens)
        if self._state.balance(escrow.address, tokens.bid_id) != 1:
            raise ValidationError(f"Escrow {escrow.address} holds no bidding token")

        send_token = self._builder.asset_transfer(
            escrow.address, self.app_address, tokens.bid_id, 1
        )
        call = self._builder.app_call(
            escrow.address,
            self.app_id,
            Selector.BID,
            self._escrows.bounds.bid_arguments(),
            foreign_assets=[tokens.bid_id, tokens.currency_id],
            foreign_apps=[minter_id],
            accounts=[invoice_address],
        )
        receipt = self._submit(
            [self._member(send_token, escrow), self._member(call, escrow)],
            fee_payer=1,
            selector=Selector.BID,
        )

        leader = self._state.find_global(self.app_id, GlobalKey.ESCROW_ADDRESS, ValueKind.ADDRESS)
        is_leader = leader == escrow.address
        logger.info(
            "investor.bid_submitted",
            app_id=self.app_id,
            escrow=escrow.address,
            invoice=invoice_address,
            is_leader=is_leader,
            tx_id=receipt.tx_id,
        )
        return BidReceipt(
            **receipt.model_dump(),
            escrow_address=escrow.address,
            is_leader=is_leader,
        )

    def reclaim(self, investor: Investor) -> ReclaimResult:
        """Recover the escrow's bidding token after bidding has closed.

        The escrow pays for the call itself. If what it can spend after this
        fee would not cover another round of bidding, the app revokes its
        access token instead, which costs one more inner transaction.

        The outcome is read back once the call confirms. The stage read with
        it shows whether this was the last outstanding bid.

        Raises:
            TallysticksError: The call confirmed but the escrow neither holds
                its bidding token again nor lost its access token.
        """
        self._guard("reclaim")
        tokens = self._escrows.token_ids()
        escrow = self._escrows.investor_escrow(investor.address, tokens)

        settings = self._settings
        inner = settings.inner_transactions_for(Selector.RECLAIM)
        fee = settings.min_txn_fee * (1 + inner)
        spendable = self._state.spendable(escrow.address)
        expect_revoke = spendable - fee < settings.max_bidding_fees
        if expect_revoke:
            inner += 1

        call = self._builder.app_call(
            escrow.address,
            self.app_id,
            Selector.RECLAIM,
            foreign_assets=[tokens.bid_id, tokens.access_id],
        )
        receipt = self._submit(
            [self._member(call, escrow)],
            fee_payer=0,
            selector=Selector.RECLAIM,
            inner_transactions=inner,
        )

        balances = self._state.balances(escrow.address)
        bid_balance = balances.get(tokens.bid_id, 0)
        access_balance = balances.get(tokens.access_id, 0)
        if access_balance == 0:
            outcome = ReclaimOutcome.REVOKED
        elif bid_balance == 1 and access_balance == 1:
            outcome = ReclaimOutcome.RETURNED
        else:
            raise TallysticksError(
                message=(
                    f"Reclaim {receipt.tx_id} confirmed but escrow {escrow.address} holds "
                    f"{bid_balance} bidding and {access_balance} access tokens"
                ),
                code="RECLAIM_UNRESOLVED",
            )
        stage = self._observe_stage(ProtocolStage.SETTLING, "reclaim", "reclaim_last")
        logger.info(
            "investor.reclaimed",
            escrow=escrow.address,
            outcome=outcome,
            stage=stage,
            expected_revoke=expect_revoke,
            spendable=spendable,
        )
        return ReclaimResult(
            investor_address=investor.address,
            escrow_address=escrow.address,
            outcome=outcome,
            stage=stage,
            receipt=receipt,
        )
