"""Domain layer: protocol vocabulary and rules with zero ledger dependencies."""

from tallysticks.domain.enums import (
    EscrowKey,
    GlobalKey,
    InvoiceKey,
    ProtocolStage,
    ReclaimOutcome,
    RepaymentStatus,
    Role,
    Selector,
    ValueKind,
)
from tallysticks.domain.exceptions import (
    CompilationError,
    ConfirmationTimeout,
    KeyNotFound,
    NotConfigured,
    SubmissionRejected,
    TallysticksError,
    TransientQueryError,
    ValidationError,
)
from tallysticks.domain.principal import (
    Admin,
    Borrower,
    EscrowResolver,
    Investor,
    Principal,
    Signer,
)
from tallysticks.domain.pricing import invoice_price, to_currency_units
from tallysticks.domain.state_machine import ProtocolStageMachine, stage_from_global_state

__all__ = [
    "EscrowKey",
    "GlobalKey",
    "InvoiceKey",
    "ProtocolStage",
    "ReclaimOutcome",
    "RepaymentStatus",
    "Role",
    "Selector",
    "ValueKind",
    "CompilationError",
    "ConfirmationTimeout",
    "KeyNotFound",
    "NotConfigured",
    "SubmissionRejected",
    "TallysticksError",
    "TransientQueryError",
    "ValidationError",
    "Admin",
    "Borrower",
    "EscrowResolver",
    "Investor",
    "Principal",
    "Signer",
    "invoice_price",
    "to_currency_units",
    "ProtocolStageMachine",
    "stage_from_global_state",
]
