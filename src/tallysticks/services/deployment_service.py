"""Deployment Service: creating and setting up a matching application."""

from __future__ import annotations

from algosdk import logic

from tallysticks.domain.enums import Selector
from tallysticks.domain.exceptions import TallysticksError
from tallysticks.domain.principal import Admin
from tallysticks.logging_config import get_logger
from tallysticks.schemas.protocol import GroupReceipt
from tallysticks.services.base import ProtocolContext, WorkflowService

logger = get_logger(__name__)

# Setup pays for: opting in to the currency, creating the bidding token,
# creating the access token
_SETUP_INNER_FEES = 3


class DeploymentService(WorkflowService):
    """Compiles, creates and sets up matching applications."""

    def __init__(self, context: ProtocolContext, admin: Admin) -> None:
        super().__init__(context)
        self._admin = admin
        self._signer = admin.sign_as_self()

    def compile_programs(self) -> tuple[bytes, bytes]:
        compiler = self._ctx.compiler
        approval = compiler.compile(self._settings.matching_approval_template)
        clear = compiler.compile(self._settings.matching_clear_template)
        return approval, clear

    def create_matching_app(
        self,
        identity_token_id: int,
        minter_id: int,
        bid_time_limit: int | None = None,
        max_bidding_fees: int | None = None,
    ) -> int:
        """Create the matching application and return its id."""
        settings = self._settings
        approval, clear = self.compile_programs()
        create = self._builder.app_create(
            self._admin.address,
            approval,
            clear,
            global_ints=settings.matching_global_ints,
            global_bytes=settings.matching_global_bytes,
            local_ints=settings.matching_local_ints,
            local_bytes=settings.matching_local_bytes,
            args=[
                identity_token_id,
                minter_id,
                settings.bid_time_limit if bid_time_limit is None else bid_time_limit,
                settings.max_bidding_fees if max_bidding_fees is None else max_bidding_fees,
            ],
        )
        receipt = self._submit(
            [self._member(create, self._signer)], fee_payer=0, label="deploy.create"
        )
        app_id = receipt.receipt.application_index
        if not app_id:
            raise TallysticksError(
                message=f"Transaction {receipt.tx_id} confirmed without an application id",
                code="INVALID_RESPONSE",
            )
        logger.info("deploy.app_created", app_id=app_id, creator=self._admin.address)
        return app_id

    def setup_matching_app(self, app_id: int, currency_id: int) -> GroupReceipt:
        """Fund the app account and have it create the protocol tokens."""
        app_address = logic.get_application_address(app_id)
        amount = (
            self._settings.matching_app_minimum_balance
            + _SETUP_INNER_FEES * self._settings.min_txn_fee
        )
        fund = self._builder.payment(self._admin.address, app_address, amount)
        call = self._builder.app_call(
            self._admin.address,
            app_id,
            Selector.SETUP,
            foreign_assets=[currency_id],
        )
        receipt = self._submit(
            [self._member(fund, self._signer), self._member(call, self._signer)],
            fee_payer=0,
            selector=Selector.SETUP,
        )
        logger.info("deploy.app_set_up", app_id=app_id, currency_id=currency_id)
        return receipt

    def deploy_matching_app(
        self,
        identity_token_id: int,
        minter_id: int,
        currency_id: int,
        bid_time_limit: int | None = None,
        max_bidding_fees: int | None = None,
    ) -> int:
        """Create then set up a matching app and return its id."""
        app_id = self.create_matching_app(
            identity_token_id, minter_id, bid_time_limit, max_bidding_fees
        )
        self.setup_matching_app(app_id, currency_id)
        return app_id
