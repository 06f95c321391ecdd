"""Client configuration via pydantic-settings.

Reads from .env file or environment variables. Everything the workflow layer
needs that is not protocol state lives here: ledger endpoints, fee and
minimum-balance constants, loan bounds baked into investor escrows, and the
fixed-point scales used for settlement pricing.

Protocol state (token ids, current leader, invoice in play) is NEVER stored
here; it is always read fresh from the ledger.

Usage:
    from tallysticks.config import get_settings
    settings = get_settings()
    print(settings.algod_url)
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Tallysticks client."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Logging ---
    log_level: str = "INFO"
    json_logs: bool = False

    # --- Ledger endpoints ---
    algod_url: str = "http://localhost:4001"
    algod_token: str = "a" * 64
    indexer_url: str = "http://localhost:8980"
    indexer_token: str = ""

    # --- Principals / deployment ---
    admin_mnemonic: str = ""
    matching_app_id: int = 0
    template_dir: Path = Path("contracts")
    investor_escrow_template: str = "investor-escrow.teal"
    borrower_escrow_template: str = "borrower-escrow.teal"
    matching_approval_template: str = "matching-approval.teal"
    matching_clear_template: str = "matching-clear.teal"

    # --- Fees and minimum balances (microalgos) ---
    min_txn_fee: int = 1000
    investor_escrow_initial_balance: int = 435_000
    borrower_escrow_minimum_balance: int = 535_000
    matching_app_minimum_balance: int = 300_000
    max_bidding_fees: int = 20_000

    # Inner transactions issued by the matching program per selector.
    # The fee payer of each group covers these on top of the group members.
    inner_transactions: dict[str, int] = Field(
        default_factory=lambda: {
            "setup": 3,
            "unfreeze": 2,
            "action": 1,
            "reclaim": 1,
            "reset": 1,
            "repay": 1,
        }
    )

    # --- Matching app schema ---
    matching_global_ints: int = 10
    matching_global_bytes: int = 4
    matching_local_ints: int = 2
    matching_local_bytes: int = 1
    bid_time_limit: int = 86_400

    # --- Loan bounds (compiled into every investor escrow) ---
    minimum_loan_value: int = 10_000
    maximum_loan_value: int = 100_000_000
    minimum_loan_term: int = 2_592_000
    maximum_loan_term: int = 31_536_000
    minimum_loan_interest: int = 100
    maximum_loan_risk: int = 50

    # --- Pricing scales ---
    currency_decimal_scale: int = 1_000_000
    usd_cents_scale: int = 100
    interest_scale: int = 10_000
    seconds_in_year: int = 31_536_000

    # --- Confirmation tracking ---
    confirmation_timeout_rounds: int = 10
    pending_query_attempts: int = 5

    def inner_transactions_for(self, selector: str) -> int:
        """Inner transaction budget for an application call selector."""
        return self.inner_transactions.get(selector, 0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the client settings."""
    return Settings()
