"""
Ledger transport test suite

Coverage:
  - Parameters:  parsing, validity window, error statuses
  - Simulation:  request shape, size rejections, other failures
  - Lookups:     contract creator, asset existence
  - Client:      auth header, owned vs injected HTTP clients
"""

import base64
import json
import os
import sys

import httpx
import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from swapgroup.constants import VALIDITY_WINDOW
from swapgroup.exceptions import LookupFailed, NetworkError, PayloadTooLarge, SimulationFailed
from swapgroup.network import LedgerClient, LedgerParams, is_size_rejection

NODE_URL = "http://node.test"
CREATOR = "CREATOR" * 8 + "AB"

PARAMS_RESPONSE = {
    "last-round": 4_200_000,
    "genesis-id": "voimain-v1.0",
    "genesis-hash": base64.b64encode(b"\x07" * 32).decode("ascii"),
    "min-fee": 1000,
    "fee": 0,
}


def _client(handler, **kwargs) -> LedgerClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return LedgerClient(NODE_URL, client=http, **kwargs)


# ============================================================================
# Parameters
# ============================================================================

class TestParams:

    @pytest.mark.asyncio
    async def test_get_params(self):
        def handler(request):
            assert request.url.path == "/v2/transactions/params"
            return httpx.Response(200, json=PARAMS_RESPONSE)

        params = await _client(handler).get_params()
        assert params.first_valid == 4_200_000
        assert params.last_valid == 4_200_000 + VALIDITY_WINDOW
        assert params.genesis_id == "voimain-v1.0"
        assert params.genesis_hash == b"\x07" * 32
        assert params.min_fee == 1000

    def test_suggested_fee_raises_minimum(self):
        params = LedgerParams.from_response({**PARAMS_RESPONSE, "fee": 2500}, window=10)
        assert params.min_fee == 2500
        assert params.last_valid - params.first_valid == 10

    def test_malformed_params(self):
        with pytest.raises(NetworkError):
            LedgerParams.from_response({"genesis-id": "x"})

    @pytest.mark.parametrize("fees", [{"min-fee": None}, {"fee": "lots"}, {"min-fee": [1000]}])
    def test_malformed_fee_fields(self, fees):
        with pytest.raises(NetworkError):
            LedgerParams.from_response({**PARAMS_RESPONSE, **fees})

    @pytest.mark.asyncio
    async def test_error_status(self):
        client = _client(lambda request: httpx.Response(503, json={"message": "catching up"}))
        with pytest.raises(NetworkError, match="catching up"):
            await client.get_params()

    @pytest.mark.asyncio
    async def test_unreachable_node(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError):
            await _client(handler).get_params()


# ============================================================================
# Simulation
# ============================================================================

class TestSimulate:

    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = {}

        def handler(request):
            assert request.method == "POST"
            assert request.url.path == "/v2/transactions/simulate"
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={"txn-groups": [{"txn-results": [{}]}]})

        result = await _client(handler).simulate(["AAAA", "BBBB"])
        assert result == {"txn-groups": [{"txn-results": [{}]}]}
        assert seen["txn-groups"] == [{"txns": ["AAAA", "BBBB"]}]
        assert seen["allow-unnamed-resources"] is True
        assert seen["allow-empty-signatures"] is True

    @pytest.mark.asyncio
    async def test_413_is_size_rejection(self):
        client = _client(lambda request: httpx.Response(413, text="Request Entity Too Large"))
        with pytest.raises(PayloadTooLarge):
            await client.simulate(["AAAA"])

    @pytest.mark.asyncio
    async def test_size_message_is_size_rejection(self):
        client = _client(lambda request: httpx.Response(400, json={"message": "request body too large"}))
        with pytest.raises(PayloadTooLarge):
            await client.simulate(["AAAA"])

    @pytest.mark.asyncio
    async def test_other_failures_keep_message(self):
        client = _client(lambda request: httpx.Response(400, json={"message": "unavailable App 900"}))
        with pytest.raises(SimulationFailed) as exc_info:
            await client.simulate(["AAAA"])
        assert exc_info.value.message == "unavailable App 900"
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_transport_failure_is_simulation_failure(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(SimulationFailed):
            await _client(handler).simulate(["AAAA"])

    @pytest.mark.asyncio
    async def test_non_object_response(self):
        client = _client(lambda request: httpx.Response(200, json=["not", "an", "object"]))
        with pytest.raises(SimulationFailed):
            await client.simulate(["AAAA"])

    def test_is_size_rejection(self):
        assert is_size_rejection(413, "")
        assert is_size_rejection(400, "Payload Too Large")
        assert not is_size_rejection(400, "overspend")
        assert not is_size_rejection(500, None)


# ============================================================================
# Lookups
# ============================================================================

class TestLookups:

    @pytest.mark.asyncio
    async def test_contract_creator(self):
        def handler(request):
            assert request.url.path == "/v2/applications/700"
            return httpx.Response(200, json={"id": 700, "params": {"creator": CREATOR}})

        assert await _client(handler).get_contract_creator(700) == CREATOR

    @pytest.mark.asyncio
    async def test_unknown_contract(self):
        client = _client(lambda request: httpx.Response(404, json={"message": "application does not exist"}))
        with pytest.raises(LookupFailed):
            await client.get_contract_creator(700)

    @pytest.mark.asyncio
    async def test_creator_missing_from_response(self):
        client = _client(lambda request: httpx.Response(200, json={"id": 700}))
        with pytest.raises(LookupFailed):
            await client.get_contract_creator(700)

    @pytest.mark.asyncio
    async def test_asset_exists(self):
        def handler(request):
            if request.url.path == "/v2/assets/1":
                return httpx.Response(200, json={"index": 1})
            if request.url.path == "/v2/assets/2":
                return httpx.Response(404, json={"message": "asset does not exist"})
            return httpx.Response(500, json={"message": "internal"})

        client = _client(handler)
        assert await client.asset_exists(1) is True
        assert await client.asset_exists(2) is False
        with pytest.raises(LookupFailed):
            await client.asset_exists(3)


# ============================================================================
# Client lifecycle
# ============================================================================

class TestLedgerClient:

    @pytest.mark.asyncio
    async def test_token_header(self):
        def handler(request):
            assert request.headers["X-Algo-API-Token"] == "secret"
            return httpx.Response(200, json=PARAMS_RESPONSE)

        await _client(handler, api_token="secret").get_params()

    @pytest.mark.asyncio
    async def test_custom_token_header(self):
        def handler(request):
            assert request.headers["X-API-Key"] == "secret"
            assert "X-Algo-API-Token" not in request.headers
            return httpx.Response(200, json=PARAMS_RESPONSE)

        await _client(handler, api_token="secret", token_header="X-API-Key").get_params()

    @pytest.mark.asyncio
    async def test_injected_client_left_open(self):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json=PARAMS_RESPONSE)))
        async with LedgerClient(NODE_URL + "/", client=http) as client:
            await client.get_params()
            assert client.url == NODE_URL
        assert not http.is_closed
        await http.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_closed(self):
        client = LedgerClient(NODE_URL)
        http = client.client
        await client.close()
        assert http.is_closed
