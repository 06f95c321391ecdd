"""Reads and decodes on-ledger key-value state and balances.

Every call goes to the ledger; nothing is cached. Values come back as an
``int`` (uint entries) or raw ``bytes`` (byte entries) and are interpreted
according to the ``ValueKind`` the caller asks for.

Three flavours per scope:
    get_*   value or KeyNotFound
    find_*  value or None, for branches where absence is expected
    has_*   bool, never raises on absence

RPC failures are not absence: AlgodHTTPError propagates from all three.
"""

from __future__ import annotations

import base64
from typing import Any

from algosdk import encoding

from tallysticks.domain.enums import ValueKind
from tallysticks.domain.exceptions import KeyNotFound, TallysticksError, ValidationError
from tallysticks.infrastructure.ledger import LedgerClient

StateValue = int | bytes

_BYTES_TYPE = 1
_UINT_TYPE = 2


def decode_state(entries: list[dict[str, Any]] | None) -> dict[str, StateValue]:
    """Decode an algod ``global-state`` / ``key-value`` list into a dict."""
    state: dict[str, StateValue] = {}
    for entry in entries or []:
        # Keys are raw bytes; ones that are not UTF-8 keep their escaped form
        key = base64.b64decode(entry["key"]).decode("utf-8", errors="backslashreplace")
        value = entry["value"]
        if value["type"] == _UINT_TYPE:
            state[key] = value.get("uint", 0)
        elif value["type"] == _BYTES_TYPE:
            state[key] = base64.b64decode(value.get("bytes", ""))
        else:
            raise TallysticksError(
                message=f"Unexpected state type {value['type']} for key {key!r}",
                code="UNEXPECTED_STATE_TYPE",
            )
    return state


def interpret(value: StateValue, kind: ValueKind, key: str = "") -> int | bytes | str:
    """Interpret a decoded state value as ``kind``."""
    if kind == ValueKind.UINT:
        if not isinstance(value, int):
            raise ValidationError(f"Key {key!r} holds bytes, not a uint")
        return value
    if isinstance(value, int):
        raise ValidationError(f"Key {key!r} holds a uint, not {kind} bytes")
    if kind == ValueKind.ADDRESS:
        return encoding.encode_address(value)
    if kind == ValueKind.TEXT:
        return value.decode("utf-8")
    return value


class StateReader:
    """Global state, local state and balances of ledger accounts."""

    def __init__(self, client: LedgerClient) -> None:
        self._client = client

    # ------------------------------------------------------------------
    # Global state
    # ------------------------------------------------------------------

    def global_state(self, app_id: int) -> dict[str, StateValue]:
        info = self._client.application_info(app_id)
        return decode_state(info.get("params", {}).get("global-state"))

    def find_global(self, app_id: int, key: str, kind: ValueKind = ValueKind.UINT) -> Any:
        state = self.global_state(app_id)
        if key not in state:
            return None
        return interpret(state[key], kind, key)

    def get_global(self, app_id: int, key: str, kind: ValueKind = ValueKind.UINT) -> Any:
        value = self.find_global(app_id, key, kind)
        if value is None:
            raise KeyNotFound(key, f"global state of application {app_id}")
        return value

    def has_global(self, app_id: int, key: str) -> bool:
        return key in self.global_state(app_id)

    # ------------------------------------------------------------------
    # Local state
    # ------------------------------------------------------------------

    def local_state(self, address: str, app_id: int) -> dict[str, StateValue] | None:
        """Decoded local state, or None if ``address`` has not opted in to ``app_id``."""
        info = self._client.account_info(address)
        for app_state in info.get("apps-local-state") or []:
            if app_state["id"] == app_id:
                return decode_state(app_state.get("key-value"))
        return None

    def has_local_state(self, address: str, app_id: int) -> bool:
        return self.local_state(address, app_id) is not None

    def find_local(
        self, address: str, app_id: int, key: str, kind: ValueKind = ValueKind.UINT
    ) -> Any:
        state = self.local_state(address, app_id)
        if state is None or key not in state:
            return None
        return interpret(state[key], kind, key)

    def get_local(
        self, address: str, app_id: int, key: str, kind: ValueKind = ValueKind.UINT
    ) -> Any:
        value = self.find_local(address, app_id, key, kind)
        if value is None:
            raise KeyNotFound(key, f"local state of {address} in application {app_id}")
        return value

    def has_local(self, address: str, app_id: int, key: str) -> bool:
        state = self.local_state(address, app_id)
        return state is not None and key in state

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def balances(self, address: str) -> dict[int, int]:
        """Microalgos under id 0, then every asset holding by asset id."""
        info = self._client.account_info(address)
        balances = {0: info.get("amount", 0)}
        for holding in info.get("assets") or []:
            balances[holding["asset-id"]] = holding.get("amount", 0)
        return balances

    def balance(self, address: str, asset_id: int = 0) -> int | None:
        """Balance of one asset, or None if ``address`` is not opted in to it."""
        return self.balances(address).get(asset_id)

    def is_opted_in_asset(self, address: str, asset_id: int) -> bool:
        return asset_id in self.balances(address)

    def min_balance(self, address: str) -> int:
        return self._client.account_info(address).get("min-balance", 0)

    def spendable(self, address: str) -> int:
        """Microalgos above the account's minimum balance."""
        info = self._client.account_info(address)
        return info.get("amount", 0) - info.get("min-balance", 0)

    def created_assets(self, address: str) -> dict[str, int]:
        """Asset name -> id for every asset ``address`` created."""
        info = self._client.account_info(address)
        return {
            asset["params"].get("name", ""): asset["index"]
            for asset in info.get("created-assets") or []
        }
