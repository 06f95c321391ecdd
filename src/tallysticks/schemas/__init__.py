"""Pydantic schemas for protocol parameters, receipts and snapshots."""

from tallysticks.schemas.protocol import (
    ActionReceipt,
    BidReceipt,
    EscrowHolding,
    GroupReceipt,
    InvoiceTerms,
    LoanBounds,
    PendingTransaction,
    ProtocolSnapshot,
    ReclaimResult,
    RepaymentSnapshot,
    TokenIds,
)

__all__ = [
    "ActionReceipt",
    "BidReceipt",
    "EscrowHolding",
    "GroupReceipt",
    "InvoiceTerms",
    "LoanBounds",
    "PendingTransaction",
    "ProtocolSnapshot",
    "ReclaimResult",
    "RepaymentSnapshot",
    "TokenIds",
]
