"""Tests for the ledger explorer client and transaction models."""

from collections.abc import AsyncGenerator, Iterator

import httpx
import pytest
import pytest_asyncio
import respx

from lockgate.ledger.client import (
    LedgerClient,
    LedgerUnavailableError,
    TransactionNotFoundError,
)
from lockgate.ledger.models import LedgerTransaction

EXPLORER = "http://explorer.test"
TX = "d4" * 32


def gettx_payload(timestamp: int = 1_700_000_000, locktime: int = 21000) -> dict:
    return {
        "active": "tx",
        "tx": {
            "txid": TX,
            "blockindex": 123,
            "timestamp": timestamp,
            "vin": [{"addresses": "coinbase", "amount": 1}],
            "vout": [
                {"addresses": "addr1", "amount": 5000},
                {
                    "addresses": "addr2",
                    "amount": 2_100_000_000,
                    "timelockUtxoInfo": {"locktime": locktime},
                },
            ],
        },
        "confirmations": 3,
        "blockcount": 126,
    }


@pytest.fixture
def explorer() -> Iterator[respx.MockRouter]:
    with respx.mock(base_url=EXPLORER) as router:
        yield router


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[LedgerClient, None]:
    ledger = LedgerClient(EXPLORER + "/", timeout=5.0)
    try:
        yield ledger
    finally:
        await ledger.aclose()


class TestGetTransaction:
    @pytest.mark.asyncio
    async def test_parses_transaction(self, client, explorer):
        explorer.get(f"/ext/gettx/{TX}").mock(
            return_value=httpx.Response(200, json=gettx_payload())
        )

        tx = await client.get_transaction(TX)

        assert tx.txid == TX
        assert tx.timestamp == 1_700_000_000
        assert len(tx.outputs) == 2
        assert tx.outputs[0].lock is None
        assert tx.outputs[1].lock.lock_duration_blocks == 21000

    @pytest.mark.asyncio
    async def test_explorer_error_payload_is_not_found(self, client, explorer):
        explorer.get(f"/ext/gettx/{TX}").mock(
            return_value=httpx.Response(200, json={"error": "tx not found.", "hash": TX})
        )

        with pytest.raises(TransactionNotFoundError):
            await client.get_transaction(TX)

    @pytest.mark.asyncio
    async def test_http_404_is_not_found(self, client, explorer):
        explorer.get(f"/ext/gettx/{TX}").mock(return_value=httpx.Response(404))

        with pytest.raises(TransactionNotFoundError):
            await client.get_transaction(TX)

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self, client, explorer):
        explorer.get(f"/ext/gettx/{TX}").mock(return_value=httpx.Response(502))

        with pytest.raises(LedgerUnavailableError):
            await client.get_transaction(TX)

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self, client, explorer):
        explorer.get(f"/ext/gettx/{TX}").mock(side_effect=httpx.ConnectTimeout("slow"))

        with pytest.raises(LedgerUnavailableError):
            await client.get_transaction(TX)

    @pytest.mark.asyncio
    async def test_invalid_json_is_unavailable(self, client, explorer):
        explorer.get(f"/ext/gettx/{TX}").mock(
            return_value=httpx.Response(200, text="<html>maintenance</html>")
        )

        with pytest.raises(LedgerUnavailableError):
            await client.get_transaction(TX)

    @pytest.mark.asyncio
    async def test_malformed_transaction_is_unavailable(self, client, explorer):
        explorer.get(f"/ext/gettx/{TX}").mock(
            return_value=httpx.Response(200, json={"tx": {"vout": []}})
        )

        with pytest.raises(LedgerUnavailableError):
            await client.get_transaction(TX)


class TestLockOutputs:
    def test_exact_match_required(self):
        tx = LedgerTransaction.model_validate(gettx_payload()["tx"])

        assert tx.has_lock_output(2_100_000_000, 21000)
        assert not tx.has_lock_output(2_100_000_000, 21001)
        assert not tx.has_lock_output(2_000_000_000, 21000)

    def test_unlocked_output_never_matches(self):
        tx = LedgerTransaction.model_validate(gettx_payload()["tx"])

        assert not tx.has_lock_output(5000, 0)

    def test_no_outputs(self):
        tx = LedgerTransaction.model_validate({"timestamp": 1})

        assert tx.outputs == []
        assert not tx.has_lock_output(1, 1)
