"""Polls the ledger until a submitted transaction is final.

The round budget counts ledger rounds, not wall-clock time. Pending-info
queries are retried with a linear backoff (1s, 2s, 3s, ...) via tenacity,
which absorbs transient RPC failures only; a pool error or an exhausted
budget ends tracking immediately. A transaction that times out is never
resubmitted: the group may still land, and resubmitting a non-idempotent
operation is unsafe.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from algosdk.error import AlgodHTTPError
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from tallysticks.domain.exceptions import (
    ConfirmationTimeout,
    SubmissionRejected,
    TransientQueryError,
)
from tallysticks.infrastructure.ledger import LedgerClient
from tallysticks.logging_config import get_logger
from tallysticks.schemas.protocol import PendingTransaction

logger = get_logger(__name__)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "confirmation.query_retry",
        attempt=retry_state.attempt_number,
        error=str(exc),
    )


class ConfirmationTracker:
    """Waits for one transaction id to be confirmed or rejected."""

    def __init__(
        self,
        client: LedgerClient,
        timeout_rounds: int = 10,
        query_attempts: int = 5,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        self._client = client
        self._timeout_rounds = timeout_rounds
        self._query_attempts = query_attempts
        self._sleep = sleep

    def _query_once(self, tx_id: str) -> dict[str, Any]:
        try:
            return self._client.pending_transaction_info(tx_id)
        except (AlgodHTTPError, OSError) as exc:
            raise TransientQueryError(f"Pending info for {tx_id} failed: {exc}") from exc

    def query_pending(self, tx_id: str) -> PendingTransaction:
        """Pending-transaction info, retrying transient query failures.

        Raises:
            TransientQueryError: If every attempt failed.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self._query_attempts),
            wait=wait_incrementing(start=1, increment=1),
            retry=retry_if_exception_type(TransientQueryError),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        info = retrying(self._query_once, tx_id)
        return PendingTransaction.model_validate(info)

    def wait(self, tx_id: str) -> PendingTransaction:
        """Block until ``tx_id`` is confirmed.

        Raises:
            SubmissionRejected: The pool reported an error for the transaction.
            ConfirmationTimeout: Not confirmed within the round budget.
            TransientQueryError: A pending-info query kept failing.
        """
        start_round = self._client.status()["last-round"]
        current_round = start_round

        while current_round < start_round + self._timeout_rounds:
            pending = self.query_pending(tx_id)

            if pending.is_confirmed:
                logger.info(
                    "confirmation.confirmed",
                    tx_id=tx_id,
                    confirmed_round=pending.confirmed_round,
                    rounds_waited=current_round - start_round,
                )
                return pending

            if pending.pool_error:
                logger.error("confirmation.pool_error", tx_id=tx_id, pool_error=pending.pool_error)
                raise SubmissionRejected(f"Pool error: {pending.pool_error}", tx_id=tx_id)

            self._client.status_after_block(current_round + 1)
            current_round += 1

        logger.error("confirmation.timeout", tx_id=tx_id, rounds=self._timeout_rounds)
        raise ConfirmationTimeout(tx_id, self._timeout_rounds)
