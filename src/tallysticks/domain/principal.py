"""Principals and signers.

Every ledger operation is signed either by a keypair or by a compiled
program (an escrow). Workflows do not care which: they ask a principal for
the signer that should act, and bind it to the operation.

A principal has two capabilities:
    - sign as self (only if it holds its key)
    - resolve its own escrow (investors and borrowers; admins have none)

This module has ZERO imports from algosdk. Concrete signers live in
ledger/signers.py and the escrow resolver in ledger/escrow.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Protocol, runtime_checkable

from tallysticks.domain.enums import Role
from tallysticks.domain.exceptions import ValidationError


@runtime_checkable
class Signer(Protocol):
    """Anything that can authorize a transaction sent from ``address``."""

    @property
    def address(self) -> str: ...

    def sign(self, txn: Any) -> Any:
        """Return the signed form of ``txn``."""
        ...


@runtime_checkable
class EscrowResolver(Protocol):
    """Derives the escrow signer owned by a principal address."""

    def investor_escrow(self, investor_address: str) -> Signer: ...

    def borrower_escrow(self, borrower_address: str) -> Signer: ...


@dataclass(frozen=True)
class Principal:
    """A protocol participant identified by its ledger address.

    Attributes:
        address: The principal's own account address.
        key: Keypair signer for ``address``, if this process holds the key.
            Escrow-only operations (e.g. bidding) work without it.
    """

    role: ClassVar[Role]

    address: str
    key: Signer | None = None

    def __post_init__(self) -> None:
        if self.key is not None and self.key.address != self.address:
            raise ValidationError(
                f"{self.role} key signs for {self.key.address}, not {self.address}"
            )

    @classmethod
    def from_signer(cls, signer: Signer) -> Principal:
        return cls(address=signer.address, key=signer)

    @property
    def can_sign(self) -> bool:
        return self.key is not None

    def sign_as_self(self) -> Signer:
        """Return the keypair signer, or raise if the key is not held."""
        if self.key is None:
            raise ValidationError(f"No key held for {self.role} {self.address}")
        return self.key

    def resolve_escrow(self, resolver: EscrowResolver) -> Signer:
        raise ValidationError(f"A {self.role} has no escrow account")

    def acting_signer(self, resolver: EscrowResolver, *, via_escrow: bool) -> Signer:
        """Signer for operations the principal performs itself or through its escrow."""
        if via_escrow:
            return self.resolve_escrow(resolver)
        return self.sign_as_self()


@dataclass(frozen=True)
class Admin(Principal):
    """Creator and operator of the matching application."""

    role: ClassVar[Role] = Role.ADMIN


@dataclass(frozen=True)
class Investor(Principal):
    """Lender whose funds sit in an investor escrow and bid on invoices."""

    role: ClassVar[Role] = Role.INVESTOR

    def resolve_escrow(self, resolver: EscrowResolver) -> Signer:
        return resolver.investor_escrow(self.address)


@dataclass(frozen=True)
class Borrower(Principal):
    """Invoice owner who may act directly or through a borrower escrow."""

    role: ClassVar[Role] = Role.BORROWER

    def resolve_escrow(self, resolver: EscrowResolver) -> Signer:
        return resolver.borrower_escrow(self.address)
