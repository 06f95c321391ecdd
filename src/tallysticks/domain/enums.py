"""Domain enumerations for the Tallysticks client.

These enums define the canonical names used on the wire (application call
selectors, global state keys) and the client-side interpretation of what it
reads back. They are framework-agnostic (no algosdk imports).
"""

import enum


class ProtocolStage(enum.StrEnum):
    """Stage of the matching application, inferred from global-state keys.

    See domain/state_machine.py for the transition table.
    """

    IDLE = "IDLE"
    VERIFIED = "VERIFIED"
    LEADING = "LEADING"
    SETTLING = "SETTLING"


class Selector(enum.StrEnum):
    """First application argument of every matching app call."""

    SETUP = "setup"
    SET_BID_TIME_LIMIT = "set_bid_time_limit"
    UNFREEZE = "unfreeze"
    FREEZE = "freeze"
    WITHDRAW = "withdraw"
    BID = "bid"
    RECLAIM = "reclaim"
    VERIFY = "verify"
    ACTION = "action"
    REPAY = "repay"
    RESET = "reset"


class GlobalKey(enum.StrEnum):
    """Global state keys of the matching application."""

    CURRENCY_ID = "currency_id"
    MINTER_ID = "minter_id"
    IDENTITY_TOKEN_ID = "identity_token_id"
    TOKEN_RESERVE_SIZE = "token_reserve_size"
    OWNER_ADDRESS = "owner_address"
    INVOICE_ADDRESS = "invoice_address"
    ESCROW_ADDRESS = "escrow_address"
    LEADING_TIMESTAMP = "leading_timestamp"
    BIDDING_TIMEOUT = "bidding_timeout"


class InvoiceKey(enum.StrEnum):
    """Local state keys the minting application keeps on an invoice account."""

    VALUE = "value"
    INTEREST_RATE = "interest_rate"
    DUE_DATE = "due_date"
    RISK_SCORE = "risk_score"
    OWNERSHIP_TOKEN_ID = "asa_id"


class EscrowKey(enum.StrEnum):
    """Local state keys the matching application keeps on an investor escrow."""

    INVESTOR_ADDRESS = "investor_address"
    TIMESTAMP = "timestamp"


class ValueKind(enum.StrEnum):
    """How the caller wants a state value interpreted.

    The state reader does no type inference: byte values are returned as
    raw bytes, a ledger address, or UTF-8 text only when asked.
    """

    UINT = "uint"
    BYTES = "bytes"
    ADDRESS = "address"
    TEXT = "text"


class Role(enum.StrEnum):
    """Principal roles taking part in the protocol."""

    ADMIN = "admin"
    INVESTOR = "investor"
    BORROWER = "borrower"


class ReclaimOutcome(enum.StrEnum):
    """What happened to an escrow's tokens when it reclaimed."""

    RETURNED = "RETURNED"
    REVOKED = "REVOKED"


class RepaymentStatus(enum.StrEnum):
    """Repayment state of a matched invoice, read from its ownership token."""

    UNMATCHED = "UNMATCHED"
    OUTSTANDING = "OUTSTANDING"
    REPAID = "REPAID"


# Asset names of the tokens the matching application creates during setup
BIDDING_TOKEN_NAME = "TallysticksBid"
ACCESS_TOKEN_NAME = "TallysticksAccess"

# Ownership-token balance the minting program leaves on a repaid invoice
REPAID_OWNERSHIP_BALANCE = 2
