"""Derives escrow accounts from protocol parameters.

An escrow's address is a pure function of its template and parameters: the
owner address, the matching application id, the protocol token ids and (for
investors) the loan bounds. Token ids are read from the ledger on every
derivation so an escrow is never derived against stale ids.
"""

from __future__ import annotations

from algosdk import encoding, logic

from tallysticks.config import Settings
from tallysticks.domain.enums import (
    ACCESS_TOKEN_NAME,
    BIDDING_TOKEN_NAME,
    EscrowKey,
    GlobalKey,
    ValueKind,
)
from tallysticks.domain.exceptions import NotConfigured, ValidationError
from tallysticks.infrastructure.compiler import TemplateCompiler
from tallysticks.ledger.signers import LogicSigSigner
from tallysticks.ledger.state import StateReader
from tallysticks.logging_config import get_logger
from tallysticks.schemas.protocol import LoanBounds, TokenIds

logger = get_logger(__name__)


def _check_address(address: str, what: str) -> None:
    if not encoding.is_valid_address(address):
        raise ValidationError(f"Invalid {what} address {address!r}")


class EscrowDeriver:
    """Resolves investor and borrower escrows for one matching application."""

    def __init__(
        self,
        state: StateReader,
        compiler: TemplateCompiler,
        app_id: int,
        settings: Settings,
        bounds: LoanBounds | None = None,
    ) -> None:
        self._state = state
        self._compiler = compiler
        self._app_id = app_id
        self._settings = settings
        self._bounds = bounds or LoanBounds.from_settings(settings)

    @property
    def app_id(self) -> int:
        return self._app_id

    @property
    def app_address(self) -> str:
        return logic.get_application_address(self._app_id)

    @property
    def bounds(self) -> LoanBounds:
        return self._bounds

    # ------------------------------------------------------------------
    # Protocol ids
    # ------------------------------------------------------------------

    def token_ids(self) -> TokenIds:
        """Read the currency, bidding and access token ids.

        Raises:
            NotConfigured: The app account has not created its tokens yet.
        """
        created = self._state.created_assets(self.app_address)
        if BIDDING_TOKEN_NAME not in created or ACCESS_TOKEN_NAME not in created:
            raise NotConfigured(self._app_id)
        return TokenIds(
            currency_id=self._state.get_global(self._app_id, GlobalKey.CURRENCY_ID),
            bid_id=created[BIDDING_TOKEN_NAME],
            access_id=created[ACCESS_TOKEN_NAME],
        )

    def minter_id(self) -> int:
        return self._state.get_global(self._app_id, GlobalKey.MINTER_ID)

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def investor_parameters(
        self, investor_address: str, tokens: TokenIds | None = None
    ) -> dict[str, int | str]:
        tokens = tokens or self.token_ids()
        return {
            "INVESTOR_ADDRESS": investor_address,
            "MATCHING_APP_ID": self._app_id,
            "CURRENCY_TOKEN_ID": tokens.currency_id,
            "BIDDING_TOKEN_ID": tokens.bid_id,
            "ACCESS_TOKEN_ID": tokens.access_id,
            **self._bounds.template_parameters(),
        }

    def borrower_parameters(
        self, borrower_address: str, tokens: TokenIds | None = None
    ) -> dict[str, int | str]:
        tokens = tokens or self.token_ids()
        return {
            "BORROWER_ADDRESS": borrower_address,
            "MATCHING_APP_ID": self._app_id,
            "MINTING_APP_ID": self.minter_id(),
            "CURRENCY_TOKEN_ID": tokens.currency_id,
        }

    def investor_escrow(
        self, investor_address: str, tokens: TokenIds | None = None
    ) -> LogicSigSigner:
        _check_address(investor_address, "investor")
        program = self._compiler.compile(
            self._settings.investor_escrow_template,
            self.investor_parameters(investor_address, tokens),
        )
        escrow = LogicSigSigner(program)
        logger.debug(
            "escrow.derived", kind="investor", owner=investor_address, escrow=escrow.address
        )
        return escrow

    def borrower_escrow(
        self, borrower_address: str, tokens: TokenIds | None = None
    ) -> LogicSigSigner:
        _check_address(borrower_address, "borrower")
        program = self._compiler.compile(
            self._settings.borrower_escrow_template,
            self.borrower_parameters(borrower_address, tokens),
        )
        escrow = LogicSigSigner(program)
        logger.debug(
            "escrow.derived", kind="borrower", owner=borrower_address, escrow=escrow.address
        )
        return escrow

    # ------------------------------------------------------------------
    # Reverse lookup
    # ------------------------------------------------------------------

    def investor_of(self, escrow_address: str) -> str:
        """Investor recorded in the escrow's local state on the matching app."""
        return self._state.get_local(
            escrow_address, self._app_id, EscrowKey.INVESTOR_ADDRESS, ValueKind.ADDRESS
        )

    def escrow_from_address(
        self, escrow_address: str, tokens: TokenIds | None = None
    ) -> tuple[str, LogicSigSigner]:
        """Return ``(investor_address, escrow)`` for an observed escrow address.

        Raises:
            KeyNotFound: The account has no ``investor_address`` local state.
            ValidationError: Re-deriving from that investor gives another address.
        """
        investor_address = self.investor_of(escrow_address)
        escrow = self.investor_escrow(investor_address, tokens)
        if escrow.address != escrow_address:
            raise ValidationError(
                f"Escrow {escrow_address} records investor {investor_address}, "
                f"whose escrow derives to {escrow.address}"
            )
        return investor_address, escrow
