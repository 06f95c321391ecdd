"""Concrete signers: keypairs and compiled programs.

Both satisfy ``tallysticks.domain.principal.Signer``; the group orchestrator
signs each member with whichever it was tagged with and never inspects the
kind.
"""

from __future__ import annotations

from algosdk import account, mnemonic, transaction


class KeySigner:
    """Signs with an ed25519 private key."""

    def __init__(self, private_key: str) -> None:
        self._private_key = private_key
        self._address = account.address_from_private_key(private_key)

    @classmethod
    def from_mnemonic(cls, phrase: str) -> KeySigner:
        return cls(mnemonic.to_private_key(phrase))

    @classmethod
    def generate(cls) -> KeySigner:
        private_key, _ = account.generate_account()
        return cls(private_key)

    @property
    def address(self) -> str:
        return self._address

    def sign(self, txn: transaction.Transaction) -> transaction.SignedTransaction:
        return txn.sign(self._private_key)

    def __repr__(self) -> str:
        return f"KeySigner({self._address})"


class LogicSigSigner:
    """Signs with a compiled program: the signer of an escrow account."""

    def __init__(self, program: bytes) -> None:
        self._lsig = transaction.LogicSigAccount(program)
        self._program = program

    @property
    def address(self) -> str:
        return self._lsig.address()

    @property
    def program(self) -> bytes:
        return self._program

    def sign(self, txn: transaction.Transaction) -> transaction.LogicSigTransaction:
        return transaction.LogicSigTransaction(txn, self._lsig)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LogicSigSigner):
            return NotImplemented
        return self._program == other._program

    def __hash__(self) -> int:
        return hash(self._program)

    def __repr__(self) -> str:
        return f"LogicSigSigner({self.address})"
