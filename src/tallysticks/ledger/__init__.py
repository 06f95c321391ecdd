"""Ledger layer: everything that talks to algod through algosdk.

    state.py         global/local state and balances
    transactions.py  single unsigned transactions
    group.py         fee bundling, signing and atomic submission
    confirmation.py  polling for finality
    escrow.py        escrow derivation from templates
    signers.py       keypair and program signers
"""

from tallysticks.ledger.confirmation import ConfirmationTracker
from tallysticks.ledger.escrow import EscrowDeriver
from tallysticks.ledger.group import GroupMember, GroupOrchestrator, bundled_fee
from tallysticks.ledger.signers import KeySigner, LogicSigSigner
from tallysticks.ledger.state import StateReader
from tallysticks.ledger.transactions import TransactionBuilder, encode_uint64

__all__ = [
    "ConfirmationTracker",
    "EscrowDeriver",
    "GroupMember",
    "GroupOrchestrator",
    "KeySigner",
    "LogicSigSigner",
    "StateReader",
    "TransactionBuilder",
    "bundled_fee",
    "encode_uint64",
]
