"""Atomic group orchestration.

Takes an ordered list of unsigned transactions, each tagged with the signer
that must authorize it, and turns them into one atomic ledger submission:

    1. bundle fees onto a single payer (every other member pays 0)
    2. check every signer signs for its own transaction's sender
    3. assign one shared group id
    4. sign each member with its own signer
    5. submit the whole set, then wait for confirmation

The ledger guarantees atomicity once the group is accepted; this module's
job is only to construct it correctly. Nothing here ever retries a
submission.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from algosdk import transaction
from algosdk.error import AlgodHTTPError

from tallysticks.domain.exceptions import SubmissionRejected, ValidationError
from tallysticks.domain.principal import Signer
from tallysticks.infrastructure.ledger import LedgerClient
from tallysticks.ledger.confirmation import ConfirmationTracker
from tallysticks.logging_config import get_logger
from tallysticks.schemas.protocol import GroupReceipt

logger = get_logger(__name__)

MAX_GROUP_SIZE = 16


@dataclass(frozen=True)
class GroupMember:
    """One unsigned transaction and the signer designated for it."""

    txn: transaction.Transaction
    signer: Signer


def bundled_fee(min_fee: int, group_size: int, inner_transactions: int = 0) -> int:
    """Flat fee that covers every member of a group plus its inner transactions."""
    return min_fee * (group_size + inner_transactions)


class GroupOrchestrator:
    """Signs and submits atomic groups, then tracks them to confirmation."""

    def __init__(
        self,
        client: LedgerClient,
        tracker: ConfirmationTracker,
        min_fee: int = 1000,
    ) -> None:
        self._client = client
        self._tracker = tracker
        self._min_fee = min_fee

    def bundle_fees(
        self,
        members: Sequence[GroupMember],
        fee_payer: int,
        inner_transactions: int = 0,
    ) -> int:
        """Put the whole group's fee on ``members[fee_payer]``; zero the rest."""
        if not 0 <= fee_payer < len(members):
            raise ValidationError(f"Fee payer index {fee_payer} outside a group of {len(members)}")
        total = bundled_fee(self._min_fee, len(members), inner_transactions)
        for index, member in enumerate(members):
            member.txn.fee = total if index == fee_payer else 0
        return total

    @staticmethod
    def check_signers(members: Sequence[GroupMember]) -> None:
        for index, member in enumerate(members):
            if member.signer.address != member.txn.sender:
                raise SubmissionRejected(
                    f"Group member {index} is sent by {member.txn.sender} "
                    f"but tagged with a signer for {member.signer.address}"
                )

    def submit(
        self,
        members: Sequence[GroupMember],
        *,
        fee_payer: int = 0,
        inner_transactions: int = 0,
        label: str = "",
    ) -> GroupReceipt:
        """Submit ``members`` as one atomic group and wait for it to confirm.

        Args:
            members: Ordered group members, 1 to 16 of them.
            fee_payer: Index of the member that carries the bundled fee.
            inner_transactions: Inner transactions the application call in
                the group is known to issue; the payer covers them too.
            label: Operation name, for logging only.

        Raises:
            ValidationError: Empty or oversized group, or a bad fee payer index.
            SubmissionRejected: Signer mismatch, or the ledger refused the group.
            ConfirmationTimeout: Accepted but not confirmed within budget.
        """
        if not 1 <= len(members) <= MAX_GROUP_SIZE:
            raise ValidationError(
                f"A group holds 1 to {MAX_GROUP_SIZE} transactions, got {len(members)}"
            )

        fee = self.bundle_fees(members, fee_payer, inner_transactions)
        self.check_signers(members)

        txns = [member.txn for member in members]
        transaction.assign_group_id(txns)
        signed = [member.signer.sign(member.txn) for member in members]
        tx_ids = [txn.get_txid() for txn in txns]

        try:
            self._client.send_transactions(signed)
        except AlgodHTTPError as exc:
            logger.error("group.rejected", operation=label, tx_id=tx_ids[0], error=str(exc))
            raise SubmissionRejected(str(exc), tx_id=tx_ids[0]) from exc

        logger.info(
            "group.submitted",
            operation=label,
            tx_id=tx_ids[0],
            size=len(members),
            fee=fee,
            fee_payer=members[fee_payer].txn.sender,
        )

        pending = self._tracker.wait(tx_ids[0])
        return GroupReceipt(
            tx_id=tx_ids[0],
            tx_ids=tx_ids,
            confirmed_round=pending.confirmed_round,
            receipt=pending,
        )
