"""Shared test fixtures for the Tallysticks test suite.

Provides:
    - FakeLedger: an in-memory algod that satisfies LedgerClient
    - FakeIndexer: a paged in-memory indexer that satisfies IndexClient
    - TEAL template files in a temporary directory
    - A ProtocolContext wired to the fakes, with a set-up matching app
    - Generated keypair signers for the admin, an investor and a borrower
"""

from __future__ import annotations

import base64
import hashlib
from collections.abc import Callable
from typing import Any

import pytest
from algosdk import encoding, logic, transaction
from algosdk.error import AlgodHTTPError

from tallysticks.config import Settings
from tallysticks.domain.enums import ACCESS_TOKEN_NAME, BIDDING_TOKEN_NAME
from tallysticks.domain.principal import Admin, Borrower, Investor
from tallysticks.ledger.signers import KeySigner
from tallysticks.services.base import ProtocolContext

APP_ID = 1001
MINTER_ID = 2002
CURRENCY_ID = 3003
BID_ID = 4004
ACCESS_ID = 5005
IDENTITY_ID = 6006
OWNERSHIP_ID = 7007
TOKEN_RESERVE_SIZE = 100

# ---------------------------------------------------------------------------
# In-memory ledger
# ---------------------------------------------------------------------------


def encode_state(values: dict[str, int | bytes]) -> list[dict[str, Any]]:
    """Encode a plain dict the way algod returns global-state / key-value."""
    entries = []
    for key, value in values.items():
        encoded_key = base64.b64encode(key.encode()).decode()
        if isinstance(value, int):
            entries.append({"key": encoded_key, "value": {"type": 2, "bytes": "", "uint": value}})
        else:
            entries.append(
                {
                    "key": encoded_key,
                    "value": {"type": 1, "bytes": base64.b64encode(value).decode(), "uint": 0},
                }
            )
    return entries


def address_bytes(address: str) -> bytes:
    return encoding.decode_address(address)


class FakeLedger:
    """Just enough algod for the client: state, balances, sends and rounds.

    Every accepted group is confirmed one round after it is sent, unless
    ``pending_responses`` has scripted answers (dicts or exceptions) queued.
    ``on_send`` lets a test apply the effects the app program would have.
    """

    def __init__(self) -> None:
        self.round = 100
        self.globals: dict[int, dict[str, int | bytes]] = {}
        self.accounts: dict[str, dict[str, Any]] = {}
        self.sent: list[list[Any]] = []
        self.pending: dict[str, dict[str, Any]] = {}
        self.pending_responses: list[dict[str, Any] | Exception] = []
        self.reject_with: str | None = None
        self.on_send: Callable[[list[Any]], None] | None = None
        self.compiled: list[str] = []

    # --- state setup helpers ---

    def account(self, address: str) -> dict[str, Any]:
        return self.accounts.setdefault(
            address,
            {
                "address": address,
                "amount": 0,
                "min-balance": 100_000,
                "assets": [],
                "created-assets": [],
                "apps-local-state": [],
            },
        )

    def set_global(self, app_id: int, **values: int | bytes) -> None:
        self.globals.setdefault(app_id, {}).update(values)

    def clear_global(self, app_id: int, *keys: str) -> None:
        for key in keys:
            self.globals.get(app_id, {}).pop(key, None)

    def set_local(self, address: str, app_id: int, **values: int | bytes) -> None:
        info = self.account(address)
        for app_state in info["apps-local-state"]:
            if app_state["id"] == app_id:
                app_state["_values"].update(values)
                break
        else:
            info["apps-local-state"].append({"id": app_id, "_values": dict(values)})

    def set_algos(self, address: str, amount: int, min_balance: int = 100_000) -> None:
        info = self.account(address)
        info["amount"] = amount
        info["min-balance"] = min_balance

    def set_asset(self, address: str, asset_id: int, amount: int) -> None:
        info = self.account(address)
        for holding in info["assets"]:
            if holding["asset-id"] == asset_id:
                holding["amount"] = amount
                return
        info["assets"].append({"asset-id": asset_id, "amount": amount, "is-frozen": False})

    def remove_asset(self, address: str, asset_id: int) -> None:
        info = self.account(address)
        info["assets"] = [h for h in info["assets"] if h["asset-id"] != asset_id]

    def create_asset(self, creator: str, asset_id: int, name: str) -> None:
        self.account(creator)["created-assets"].append(
            {"index": asset_id, "params": {"name": name, "creator": creator}}
        )

    # --- inspection helpers ---

    def last_group(self) -> list[Any]:
        """Unsigned transactions of the last submitted group."""
        return [signed.transaction for signed in self.sent[-1]]

    # --- algod API ---

    def send_transactions(self, txns: list[Any]) -> str:
        if self.reject_with is not None:
            message, self.reject_with = self.reject_with, None
            raise AlgodHTTPError(message, 400)
        self.sent.append(list(txns))
        tx_id = txns[0].get_txid()
        self.pending[tx_id] = {"pool-error": "", "confirmed-round": self.round + 1, "txn": {}}
        if self.on_send is not None:
            self.on_send(list(txns))
        return tx_id

    def suggested_params(self) -> transaction.SuggestedParams:
        return transaction.SuggestedParams(
            fee=0,
            first=self.round,
            last=self.round + 1000,
            gh=base64.b64encode(bytes(32)).decode(),
            gen="sandnet-v1",
            flat_fee=False,
            min_fee=1000,
        )

    def account_info(self, address: str) -> dict[str, Any]:
        info = self.account(address)
        rendered = dict(info)
        rendered["apps-local-state"] = [
            {"id": app_state["id"], "key-value": encode_state(app_state["_values"])}
            for app_state in info["apps-local-state"]
        ]
        return rendered

    def application_info(self, application_id: int) -> dict[str, Any]:
        if application_id not in self.globals:
            raise AlgodHTTPError("application does not exist", 404)
        return {
            "id": application_id,
            "params": {"global-state": encode_state(self.globals[application_id])},
        }

    def status(self) -> dict[str, Any]:
        return {"last-round": self.round}

    def status_after_block(self, block_num: int) -> dict[str, Any]:
        self.round = max(self.round, block_num)
        return self.status()

    def pending_transaction_info(self, transaction_id: str) -> dict[str, Any]:
        if self.pending_responses:
            response = self.pending_responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        if transaction_id not in self.pending:
            raise AlgodHTTPError("txn does not exist", 404)
        return self.pending[transaction_id]

    def compile(self, source: str) -> dict[str, Any]:
        self.compiled.append(source)
        if "err" in source.split():
            raise AlgodHTTPError("assembly error: unknown opcode", 400)
        digest = hashlib.sha256(source.encode()).digest()
        # Version byte and an opcode first, so the bytes are never all printable
        program = b"\x06\x81\x01" + digest
        return {"hash": "HASH", "result": base64.b64encode(program).decode()}


class FakeIndexer:
    """Asset balances served in pages, like the indexer's asset_balances."""

    def __init__(self, page_size: int = 2) -> None:
        self.page_size = page_size
        self.holders: dict[int, list[dict[str, Any]]] = {}
        self.calls: list[dict[str, Any]] = []

    def asset_balances(
        self,
        asset_id: int,
        limit: int | None = None,
        next_page: str | None = None,
        min_balance: int | None = None,
        max_balance: int | None = None,
    ) -> dict[str, Any]:
        self.calls.append(
            {"asset_id": asset_id, "next_page": next_page, "min": min_balance, "max": max_balance}
        )
        holders = [
            h
            for h in self.holders.get(asset_id, [])
            if (min_balance is None or h["amount"] > min_balance)
            and (max_balance is None or h["amount"] < max_balance)
        ]
        start = int(next_page or 0)
        page = holders[start : start + self.page_size]
        response: dict[str, Any] = {"balances": page}
        if start + self.page_size < len(holders):
            response["next-token"] = str(start + self.page_size)
        return response


# ---------------------------------------------------------------------------
# Templates and settings
# ---------------------------------------------------------------------------

INVESTOR_TEMPLATE = """#pragma version 6
addr TMPL_INVESTOR_ADDRESS
int TMPL_MATCHING_APP_ID
int TMPL_CURRENCY_TOKEN_ID
int TMPL_BIDDING_TOKEN_ID
int TMPL_ACCESS_TOKEN_ID
int TMPL_MINIMUM_INTEREST
int TMPL_MAXIMUM_RISK
int TMPL_MINIMUM_VALUE
int TMPL_MAXIMUM_VALUE
int TMPL_MINIMUM_TERM
int TMPL_MAXIMUM_TERM
"""

BORROWER_TEMPLATE = """#pragma version 6
addr TMPL_BORROWER_ADDRESS
int TMPL_MATCHING_APP_ID
int TMPL_MINTING_APP_ID
int TMPL_CURRENCY_TOKEN_ID
"""


@pytest.fixture
def template_dir(tmp_path):
    (tmp_path / "investor-escrow.teal").write_text(INVESTOR_TEMPLATE)
    (tmp_path / "borrower-escrow.teal").write_text(BORROWER_TEMPLATE)
    (tmp_path / "matching-approval.teal").write_text("#pragma version 6\nint 1\n")
    (tmp_path / "matching-clear.teal").write_text("#pragma version 6\nint 1\nreturn\n")
    return tmp_path


@pytest.fixture
def settings(template_dir) -> Settings:
    return Settings(_env_file=None, template_dir=template_dir, matching_app_id=APP_ID)


# ---------------------------------------------------------------------------
# Ledger fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def fake_indexer() -> FakeIndexer:
    return FakeIndexer()


@pytest.fixture
def app_address() -> str:
    return logic.get_application_address(APP_ID)


@pytest.fixture
def configured_ledger(fake_ledger: FakeLedger, app_address: str) -> FakeLedger:
    """A ledger on which the matching app has completed setup, in IDLE stage."""
    fake_ledger.set_global(
        APP_ID,
        currency_id=CURRENCY_ID,
        minter_id=MINTER_ID,
        identity_token_id=IDENTITY_ID,
        token_reserve_size=TOKEN_RESERVE_SIZE,
    )
    fake_ledger.create_asset(app_address, BID_ID, BIDDING_TOKEN_NAME)
    fake_ledger.create_asset(app_address, ACCESS_ID, ACCESS_TOKEN_NAME)
    fake_ledger.set_algos(app_address, 1_000_000, min_balance=300_000)
    fake_ledger.set_asset(app_address, BID_ID, TOKEN_RESERVE_SIZE)
    fake_ledger.set_asset(app_address, ACCESS_ID, TOKEN_RESERVE_SIZE)
    return fake_ledger


@pytest.fixture
def context(
    configured_ledger: FakeLedger, fake_indexer: FakeIndexer, settings: Settings
) -> ProtocolContext:
    return ProtocolContext(
        configured_ledger,
        APP_ID,
        settings=settings,
        indexer=fake_indexer,
        sleep=lambda seconds: None,
    )


# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------


@pytest.fixture
def admin_key() -> KeySigner:
    return KeySigner.generate()


@pytest.fixture
def investor_key() -> KeySigner:
    return KeySigner.generate()


@pytest.fixture
def borrower_key() -> KeySigner:
    return KeySigner.generate()


@pytest.fixture
def admin(admin_key: KeySigner) -> Admin:
    return Admin.from_signer(admin_key)


@pytest.fixture
def investor(investor_key: KeySigner) -> Investor:
    return Investor.from_signer(investor_key)


@pytest.fixture
def borrower(borrower_key: KeySigner) -> Borrower:
    return Borrower.from_signer(borrower_key)


@pytest.fixture
def invoice_key() -> KeySigner:
    """Stands in for the invoice account the minting app controls."""
    return KeySigner.generate()
