"""Shared plumbing for the workflow services.

Every named operation has the same five-step shape:

    read    current ids and addresses (StateReader)
    derive  the escrows involved (EscrowDeriver)
    build   the minimal set of transactions (TransactionBuilder)
    submit  them as one atomic group (GroupOrchestrator)
    await   confirmation (ConfirmationTracker)

ProtocolContext wires those components for one matching application.
WorkflowService holds the helpers every role-specific service uses,
including the stage guard that fails fast on operations the observed
global state already rules out.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from algosdk import transaction
from statemachine.exceptions import TransitionNotAllowed

from tallysticks.config import Settings, get_settings
from tallysticks.domain.enums import GlobalKey, InvoiceKey, ProtocolStage, Selector, ValueKind
from tallysticks.domain.exceptions import KeyNotFound, ValidationError
from tallysticks.domain.principal import Signer
from tallysticks.domain.state_machine import ProtocolStageMachine, stage_from_global_state
from tallysticks.infrastructure.compiler import TemplateCompiler
from tallysticks.infrastructure.ledger import IndexClient, LedgerClient, get_algod, get_indexer
from tallysticks.ledger.confirmation import ConfirmationTracker
from tallysticks.ledger.escrow import EscrowDeriver
from tallysticks.ledger.group import GroupMember, GroupOrchestrator
from tallysticks.ledger.state import StateReader, StateValue, interpret
from tallysticks.ledger.transactions import TransactionBuilder
from tallysticks.logging_config import get_logger, log_context
from tallysticks.schemas.protocol import GroupReceipt

logger = get_logger(__name__)


class ProtocolContext:
    """Ledger components bound to one matching application id."""

    def __init__(
        self,
        client: LedgerClient,
        app_id: int,
        *,
        settings: Settings | None = None,
        indexer: IndexClient | None = None,
        compiler: TemplateCompiler | None = None,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client
        self.indexer = indexer
        self.app_id = app_id
        self.sleep = sleep
        self.state = StateReader(client)
        self.builder = TransactionBuilder(client)
        self.tracker = ConfirmationTracker(
            client,
            timeout_rounds=self.settings.confirmation_timeout_rounds,
            query_attempts=self.settings.pending_query_attempts,
            sleep=sleep,
        )
        self.groups = GroupOrchestrator(client, self.tracker, min_fee=self.settings.min_txn_fee)
        self.compiler = compiler or TemplateCompiler(client, self.settings.template_dir)
        self.escrows = EscrowDeriver(self.state, self.compiler, app_id, self.settings)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ProtocolContext:
        """Context for the configured app, using the clients from init_ledger()."""
        settings = settings or get_settings()
        return cls(
            get_algod(),
            settings.matching_app_id,
            settings=settings,
            indexer=get_indexer(),
        )

    def for_app(self, app_id: int) -> ProtocolContext:
        """Same clients and settings, bound to another application id."""
        return ProtocolContext(
            self.client,
            app_id,
            settings=self.settings,
            indexer=self.indexer,
            compiler=self.compiler,
            sleep=self.sleep,
        )


class WorkflowService:
    """Base class of the role-specific services."""

    def __init__(self, context: ProtocolContext) -> None:
        self._ctx = context
        self._settings = context.settings
        self._state = context.state
        self._builder = context.builder
        self._groups = context.groups
        self._escrows = context.escrows

    @property
    def app_id(self) -> int:
        return self._ctx.app_id

    @property
    def app_address(self) -> str:
        return self._escrows.app_address

    # ------------------------------------------------------------------
    # Stage guard
    # ------------------------------------------------------------------

    def _guard(self, event_name: str) -> dict[str, StateValue]:
        """Read global state and check ``event_name`` can fire from its stage.

        Returns the global state read, so the caller does not read it twice.

        Raises:
            ValidationError: The observed stage makes the operation impossible.
        """
        global_state = self._state.global_state(self.app_id)
        stage = stage_from_global_state(global_state)
        sm = ProtocolStageMachine(current_stage=stage)
        event_method = getattr(sm, event_name)
        try:
            event_method()
        except TransitionNotAllowed as err:
            raise ValidationError(
                f"Cannot {event_name} while application {self.app_id} is {stage}"
            ) from err
        return global_state

    def _stage(self) -> ProtocolStage:
        return stage_from_global_state(self._state.global_state(self.app_id))

    def _observe_stage(self, before: ProtocolStage, *event_names: str) -> ProtocolStage:
        """Read the stage after a confirmed operation and match it to ``event_names``.

        Another party may have moved the app in between. A stage none of the
        events leads to from ``before`` is logged, not raised, since the
        operation itself has already confirmed.
        """
        observed = self._stage()
        for event_name in event_names:
            sm = ProtocolStageMachine(current_stage=before)
            getattr(sm, event_name)()
            if sm.stage == observed:
                return observed
        logger.warning(
            "workflow.unexpected_stage",
            app_id=self.app_id,
            before=before,
            observed=observed,
            events=list(event_names),
        )
        return observed

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    def _from_global(
        self,
        global_state: Mapping[str, StateValue],
        key: GlobalKey,
        kind: ValueKind = ValueKind.UINT,
    ) -> Any:
        if key not in global_state:
            raise KeyNotFound(key, f"global state of application {self.app_id}")
        return interpret(global_state[key], kind, key)

    def _global(self, key: GlobalKey, kind: ValueKind = ValueKind.UINT) -> Any:
        return self._state.get_global(self.app_id, key, kind)

    def _ownership_token_id(self, invoice_address: str, minter_id: int) -> int:
        """Ownership token of an invoice, from the minting app's local state."""
        return self._state.get_local(invoice_address, minter_id, InvoiceKey.OWNERSHIP_TOKEN_ID)

    # ------------------------------------------------------------------
    # Submission helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _member(txn: transaction.Transaction, signer: Signer) -> GroupMember:
        return GroupMember(txn=txn, signer=signer)

    def _submit(
        self,
        members: Sequence[GroupMember],
        *,
        fee_payer: int,
        selector: Selector | None = None,
        inner_transactions: int | None = None,
        label: str = "",
    ) -> GroupReceipt:
        """Submit one atomic group with the app id bound into the log context.

        The inner-transaction budget comes from ``selector`` unless given.
        """
        inner = inner_transactions
        if inner is None:
            inner = self._settings.inner_transactions_for(selector) if selector else 0
        with log_context(app_id=self.app_id):
            return self._groups.submit(
                members,
                fee_payer=fee_payer,
                inner_transactions=inner,
                label=label or (str(selector) if selector else ""),
            )

    def _fund(self, sender: Signer, receiver: str, amount: int, label: str) -> GroupReceipt:
        """Plain microalgo payment, as its own atomic step."""
        payment = self._builder.payment(sender.address, receiver, amount)
        return self._submit([self._member(payment, sender)], fee_payer=0, label=label)
