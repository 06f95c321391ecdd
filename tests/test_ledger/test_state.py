"""Tests for the StateReader: decoding, the three lookup flavours, balances."""

from __future__ import annotations

import base64

import pytest
from algosdk.error import AlgodHTTPError

from tallysticks.domain.enums import ValueKind
from tallysticks.domain.exceptions import KeyNotFound, ValidationError
from tallysticks.ledger.state import StateReader, decode_state

from tests.conftest import APP_ID, MINTER_ID, address_bytes, encode_state


@pytest.fixture
def reader(fake_ledger) -> StateReader:
    return StateReader(fake_ledger)


class TestDecodeState:
    def test_uint_and_bytes(self) -> None:
        decoded = decode_state(encode_state({"count": 7, "name": b"tally"}))
        assert decoded == {"count": 7, "name": b"tally"}

    def test_missing_list_is_empty(self) -> None:
        assert decode_state(None) == {}

    def test_non_utf8_key_is_escaped(self) -> None:
        entries = encode_state({"currency_id": 3}) + [
            {"key": base64.b64encode(b"\xff\xfe").decode(), "value": {"type": 2, "uint": 9}}
        ]
        decoded = decode_state(entries)
        assert decoded["currency_id"] == 3
        assert decoded["\\xff\\xfe"] == 9

    def test_non_utf8_key_does_not_block_lookups(self, monkeypatch, fake_ledger, reader) -> None:
        entries = encode_state({"bidding_timeout": 1234}) + [
            {"key": base64.b64encode(b"\x80").decode(), "value": {"type": 1, "bytes": ""}}
        ]
        monkeypatch.setattr(
            fake_ledger,
            "application_info",
            lambda app_id: {"id": app_id, "params": {"global-state": entries}},
        )
        assert reader.get_global(APP_ID, "bidding_timeout") == 1234
        assert not reader.has_global(APP_ID, "escrow_address")

    def test_unknown_type_rejected(self) -> None:
        entries = [{"key": "eA==", "value": {"type": 9}}]
        with pytest.raises(Exception, match="Unexpected state type"):
            decode_state(entries)


class TestGlobalState:
    def test_get_uint(self, fake_ledger, reader) -> None:
        fake_ledger.set_global(APP_ID, bidding_timeout=1234)
        assert reader.get_global(APP_ID, "bidding_timeout") == 1234

    def test_get_address(self, fake_ledger, reader, investor_key) -> None:
        fake_ledger.set_global(APP_ID, owner_address=address_bytes(investor_key.address))
        value = reader.get_global(APP_ID, "owner_address", ValueKind.ADDRESS)
        assert value == investor_key.address

    def test_get_text_and_raw(self, fake_ledger, reader) -> None:
        fake_ledger.set_global(APP_ID, label=b"hello")
        assert reader.get_global(APP_ID, "label", ValueKind.TEXT) == "hello"
        assert reader.get_global(APP_ID, "label", ValueKind.BYTES) == b"hello"

    def test_get_missing_raises(self, fake_ledger, reader) -> None:
        fake_ledger.set_global(APP_ID, currency_id=1)
        with pytest.raises(KeyNotFound) as exc_info:
            reader.get_global(APP_ID, "escrow_address")
        assert exc_info.value.code == "KEY_NOT_FOUND"

    def test_find_missing_is_none(self, fake_ledger, reader) -> None:
        fake_ledger.set_global(APP_ID, currency_id=1)
        assert reader.find_global(APP_ID, "escrow_address") is None

    def test_find_zero_is_not_absence(self, fake_ledger, reader) -> None:
        fake_ledger.set_global(APP_ID, leading_timestamp=0)
        assert reader.find_global(APP_ID, "leading_timestamp") == 0

    def test_has(self, fake_ledger, reader) -> None:
        fake_ledger.set_global(APP_ID, bidding_timeout=5)
        assert reader.has_global(APP_ID, "bidding_timeout")
        assert not reader.has_global(APP_ID, "owner_address")

    def test_kind_mismatch(self, fake_ledger, reader) -> None:
        fake_ledger.set_global(APP_ID, currency_id=1)
        with pytest.raises(ValidationError):
            reader.get_global(APP_ID, "currency_id", ValueKind.ADDRESS)

    def test_rpc_errors_are_not_absence(self, reader) -> None:
        with pytest.raises(AlgodHTTPError):
            reader.has_global(999, "anything")


class TestLocalState:
    def test_get_local(self, fake_ledger, reader, borrower_key) -> None:
        fake_ledger.set_local(borrower_key.address, MINTER_ID, value=5_000, asa_id=77)
        assert reader.get_local(borrower_key.address, MINTER_ID, "asa_id") == 77

    def test_not_opted_in(self, reader, borrower_key) -> None:
        assert reader.local_state(borrower_key.address, MINTER_ID) is None
        assert not reader.has_local_state(borrower_key.address, MINTER_ID)
        assert reader.find_local(borrower_key.address, MINTER_ID, "value") is None
        with pytest.raises(KeyNotFound):
            reader.get_local(borrower_key.address, MINTER_ID, "value")

    def test_opted_in_without_key(self, fake_ledger, reader, borrower_key) -> None:
        fake_ledger.set_local(borrower_key.address, APP_ID)
        assert reader.has_local_state(borrower_key.address, APP_ID)
        assert not reader.has_local(borrower_key.address, APP_ID, "timestamp")


class TestBalances:
    def test_balances_include_algos(self, fake_ledger, reader, investor_key) -> None:
        fake_ledger.set_algos(investor_key.address, 2_000_000, min_balance=300_000)
        fake_ledger.set_asset(investor_key.address, 55, 10)
        assert reader.balances(investor_key.address) == {0: 2_000_000, 55: 10}
        assert reader.balance(investor_key.address) == 2_000_000
        assert reader.balance(investor_key.address, 55) == 10

    def test_not_opted_in_asset(self, reader, investor_key) -> None:
        assert reader.balance(investor_key.address, 55) is None
        assert not reader.is_opted_in_asset(investor_key.address, 55)

    def test_zero_holding_is_opted_in(self, fake_ledger, reader, investor_key) -> None:
        fake_ledger.set_asset(investor_key.address, 55, 0)
        assert reader.balance(investor_key.address, 55) == 0
        assert reader.is_opted_in_asset(investor_key.address, 55)

    def test_spendable(self, fake_ledger, reader, investor_key) -> None:
        fake_ledger.set_algos(investor_key.address, 500_000, min_balance=435_000)
        assert reader.min_balance(investor_key.address) == 435_000
        assert reader.spendable(investor_key.address) == 65_000

    def test_created_assets(self, fake_ledger, reader, investor_key) -> None:
        fake_ledger.create_asset(investor_key.address, 9, "TallysticksBid")
        assert reader.created_assets(investor_key.address) == {"TallysticksBid": 9}
