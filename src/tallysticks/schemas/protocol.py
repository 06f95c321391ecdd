"""Pydantic schemas for values read from, or handed back about, the ledger.

These are snapshots: each one is built from a fresh read and is never fed
back into a later operation as a source of truth.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from tallysticks.config import Settings
from tallysticks.domain.enums import ProtocolStage, ReclaimOutcome, RepaymentStatus

# ---------------------------------------------------------------------------
# Protocol parameters
# ---------------------------------------------------------------------------


class TokenIds(BaseModel):
    """Asset ids of the protocol tokens configured on a matching app."""

    model_config = ConfigDict(frozen=True)

    currency_id: int = Field(..., gt=0)
    bid_id: int = Field(..., gt=0)
    access_id: int = Field(..., gt=0)


class LoanBounds(BaseModel):
    """Acceptable invoice range compiled into an investor escrow."""

    model_config = ConfigDict(frozen=True)

    minimum_value: int = Field(..., ge=0)
    maximum_value: int = Field(..., ge=0)
    minimum_term: int = Field(..., ge=0)
    maximum_term: int = Field(..., ge=0)
    minimum_interest: int = Field(..., ge=0)
    maximum_risk: int = Field(..., ge=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> LoanBounds:
        return cls(
            minimum_value=settings.minimum_loan_value,
            maximum_value=settings.maximum_loan_value,
            minimum_term=settings.minimum_loan_term,
            maximum_term=settings.maximum_loan_term,
            minimum_interest=settings.minimum_loan_interest,
            maximum_risk=settings.maximum_loan_risk,
        )

    def template_parameters(self) -> dict[str, int]:
        """Placeholder values for the investor escrow template."""
        return {
            "MINIMUM_INTEREST": self.minimum_interest,
            "MAXIMUM_RISK": self.maximum_risk,
            "MINIMUM_VALUE": self.minimum_value,
            "MAXIMUM_VALUE": self.maximum_value,
            "MINIMUM_TERM": self.minimum_term,
            "MAXIMUM_TERM": self.maximum_term,
        }

    def bid_arguments(self) -> list[int]:
        """Arguments of the ``bid`` call, in the order the program reads them."""
        return [
            self.minimum_value,
            self.maximum_value,
            self.minimum_term,
            self.maximum_term,
            self.minimum_interest,
            self.maximum_risk,
        ]


class InvoiceTerms(BaseModel):
    """Invoice data kept by the minting app in the invoice's local state."""

    model_config = ConfigDict(frozen=True)

    address: str
    value: int = Field(..., ge=0, description="Face value in cents")
    interest_rate: int = Field(..., ge=0)
    due_date: int
    risk_score: int | None = None
    ownership_token_id: int = Field(..., gt=0)


# ---------------------------------------------------------------------------
# Submission results
# ---------------------------------------------------------------------------


class PendingTransaction(BaseModel):
    """algod's view of a submitted transaction (pending or confirmed)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    pool_error: str = Field(default="", alias="pool-error")
    confirmed_round: int = Field(default=0, alias="confirmed-round")
    application_index: int | None = Field(default=None, alias="application-index")
    asset_index: int | None = Field(default=None, alias="asset-index")
    global_state_delta: list[dict[str, Any]] | None = Field(
        default=None, alias="global-state-delta"
    )
    local_state_delta: list[dict[str, Any]] | None = Field(
        default=None, alias="local-state-delta"
    )
    inner_txns: list[dict[str, Any]] = Field(default_factory=list, alias="inner-txns")
    txn: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_confirmed(self) -> bool:
        return self.confirmed_round > 0


class GroupReceipt(BaseModel):
    """Outcome of one confirmed atomic group.

    Attributes:
        tx_id: Id of the first member; the id the group was tracked by.
        tx_ids: Ids of every member, in group order.
        confirmed_round: Round in which the whole group was applied.
        receipt: The pending-transaction record of the first member.
    """

    tx_id: str
    tx_ids: list[str]
    confirmed_round: int
    receipt: PendingTransaction


class ActionReceipt(GroupReceipt):
    """Receipt of a matched invoice; ``price`` is what the borrower received."""

    price: int
    investor_address: str
    escrow_address: str


class BidReceipt(GroupReceipt):
    """Receipt of a bid; leadership is observed after confirmation."""

    escrow_address: str
    is_leader: bool


class ReclaimResult(BaseModel):
    """Outcome of one escrow reclaiming its bidding token."""

    escrow_address: str
    investor_address: str | None = None
    outcome: ReclaimOutcome | None = None
    stage: ProtocolStage | None = Field(
        default=None, description="Stage observed once the reclaim confirmed"
    )
    receipt: GroupReceipt | None = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Read-side snapshots
# ---------------------------------------------------------------------------


class EscrowHolding(BaseModel):
    """An account holding the access token, as reported by the indexer."""

    address: str
    amount: int


class ProtocolSnapshot(BaseModel):
    """Point-in-time view of the matching app's global state."""

    app_id: int
    stage: ProtocolStage
    owner_address: str | None = None
    invoice_address: str | None = None
    escrow_address: str | None = None
    leading_timestamp: int | None = None
    bidding_timeout: int | None = None


class RepaymentSnapshot(BaseModel):
    """Ownership-token balance of an invoice and what it means."""

    invoice_address: str
    ownership_token_id: int
    balance: int
    status: RepaymentStatus
