"""algod and indexer clients behind explicit accessor protocols.

Workflows never hold protocol state; they ask these clients every time.
Tests substitute in-memory fakes that satisfy the same protocols.

Usage:
    from tallysticks.infrastructure.ledger import init_ledger, get_algod, get_indexer

    init_ledger()
    status = get_algod().status()
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from algosdk.v2client import algod, indexer

from tallysticks.config import get_settings
from tallysticks.logging_config import get_logger

logger = get_logger(__name__)


@runtime_checkable
class LedgerClient(Protocol):
    """The subset of the algod v2 API the client relies on."""

    def send_transactions(self, txns: list[Any]) -> str: ...

    def suggested_params(self) -> Any: ...

    def account_info(self, address: str) -> dict[str, Any]: ...

    def application_info(self, application_id: int) -> dict[str, Any]: ...

    def status(self) -> dict[str, Any]: ...

    def status_after_block(self, block_num: int) -> dict[str, Any]: ...

    def pending_transaction_info(self, transaction_id: str) -> dict[str, Any]: ...

    def compile(self, source: str) -> dict[str, Any]: ...


@runtime_checkable
class IndexClient(Protocol):
    """The subset of the indexer v2 API the client relies on (paged, lagging)."""

    def asset_balances(
        self,
        asset_id: int,
        limit: int | None = None,
        next_page: str | None = None,
        min_balance: int | None = None,
        max_balance: int | None = None,
    ) -> dict[str, Any]: ...


_algod_client: algod.AlgodClient | None = None
_indexer_client: indexer.IndexerClient | None = None


def init_ledger() -> tuple[algod.AlgodClient, indexer.IndexerClient]:
    """Create the algod and indexer clients from settings and check algod is reachable."""
    global _algod_client, _indexer_client
    settings = get_settings()
    _algod_client = algod.AlgodClient(settings.algod_token, settings.algod_url)
    _indexer_client = indexer.IndexerClient(settings.indexer_token, settings.indexer_url)
    # Verify connectivity
    status = _algod_client.status()
    logger.info(
        "ledger.connected",
        algod_url=settings.algod_url,
        indexer_url=settings.indexer_url,
        last_round=status.get("last-round"),
    )
    return _algod_client, _indexer_client


def get_algod() -> algod.AlgodClient:
    """Return the algod client singleton. Must call init_ledger() first."""
    if _algod_client is None:
        raise RuntimeError("Ledger not initialized. Call init_ledger() first.")
    return _algod_client


def get_indexer() -> indexer.IndexerClient:
    """Return the indexer client singleton. Must call init_ledger() first."""
    if _indexer_client is None:
        raise RuntimeError("Ledger not initialized. Call init_ledger() first.")
    return _indexer_client


def close_ledger() -> None:
    """Drop the client singletons. algosdk keeps no open connections."""
    global _algod_client, _indexer_client
    if _algod_client is not None:
        logger.info("ledger.disconnected")
    _algod_client = None
    _indexer_client = None
