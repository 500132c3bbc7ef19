"""
Batch builder integration tests

Runs the full pipeline against an in-process ledger node that reports the
resources each contract call touches until the batch declares them.

Coverage:
  - Swap batches:    discovery rounds, placement, sealing, network fee
  - Local state:     creator lookups feeding the packer
  - Chunking:        size-rejected batches simulated in slices
  - Degradation:     failed simulations still yield a sealed batch
  - Platform fee:    default basis-point fee, explicit override
  - Unwrap batches
  - Construction from configuration
"""

import base64
import hashlib
import json
import os
import sys

import httpx
import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from swapgroup.assembly import BatchAssembler, Hop, PlatformFee, PoolRegistry
from swapgroup.builder import SwapBatchBuilder
from swapgroup.config import SwapGroupConfig
from swapgroup.constants import BALANCE_BOX_COST, MAX_OPERATION_REFERENCES
from swapgroup.ledger import AccountRef, Batch, BoxRef, ContractRef, Operation, compute_group_id, encode_address
from swapgroup.network import LedgerClient


def _addr(n: int) -> str:
    return encode_address(hashlib.sha256(f"account-{n}".encode()).digest())


SENDER = _addr(1)
FEE_RECIPIENT = _addr(2)
HOLDER = _addr(3)
CREATOR = _addr(4)

NATIVE = 0
USDC = 302190
W_NATIVE = 390001
W_USDC = 395553
POOL = 1000
STATE_CONTRACT = 700

POOLS = {
    "pools": [{
        "poolId": POOL,
        "dex": "humbleswap",
        "tokens": {
            "underlyingToWrapped": {str(NATIVE): W_NATIVE, str(USDC): W_USDC},
            "wrappedPair": {"tokA": W_NATIVE, "tokB": W_USDC},
        },
    }]
}
TOKENS = {"tokens": {str(USDC): {"symbol": "aUSDC", "decimals": 6, "type": "ASA"}}}

PARAMS_RESPONSE = {
    "last-round": 1000,
    "genesis-id": "voimain-v1.0",
    "genesis-hash": base64.b64encode(b"\x01" * 32).decode("ascii"),
    "min-fee": 1000,
}

POOL_BOXES = [BoxRef(W_NATIVE, b"balance"), BoxRef(W_USDC, b"balance"), BoxRef(POOL, b"state")]

ROUTE = [Hop(pool_id=POOL, input_token=USDC, output_token=NATIVE, amount=1_000_000, min_output=900_000)]


class FakeLedger:
    """
    Node whose pool swap call touches POOL_BOXES (and, optionally, local
    state of STATE_CONTRACT for HOLDER).  Undeclared resources are reported
    per operation; groups above *max_group* are rejected on size.
    """

    def __init__(self, max_group: int = 16, local_state: bool = False, fail_with: str = ""):
        self.max_group = max_group
        self.local_state = local_state
        self.fail_with = fail_with
        self.simulations = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/v2/transactions/params":
            return httpx.Response(200, json=PARAMS_RESPONSE)
        if path == f"/v2/applications/{STATE_CONTRACT}":
            return httpx.Response(200, json={"id": STATE_CONTRACT, "params": {"creator": CREATOR}})
        if path == "/v2/transactions/simulate":
            return self.simulate(json.loads(request.content))
        return httpx.Response(404, json={"message": "not found"})

    def simulate(self, payload) -> httpx.Response:
        ops = [Operation.from_base64(txn) for txn in payload["txn-groups"][0]["txns"]]
        if len(ops) > self.max_group:
            return httpx.Response(413, text="Payload Too Large")
        if self.fail_with:
            return httpx.Response(400, json={"message": self.fail_with})
        self.simulations.append(ops)

        available = Batch(ops).available_references()
        results = []
        for op in ops:
            accessed = {}
            if op.contract_id == POOL:
                missing = [box for box in POOL_BOXES if box not in available]
                if missing:
                    accessed["boxes"] = [
                        {"app": box.owner, "name": base64.b64encode(box.name).decode("ascii")} for box in missing
                    ]
                if self.local_state and not (
                    ContractRef(STATE_CONTRACT) in available and AccountRef(HOLDER) in available
                ):
                    accessed["app-locals"] = [{"app": STATE_CONTRACT, "account": HOLDER}]
            results.append({"unnamed-resources-accessed": accessed} if accessed else {})
        return httpx.Response(200, json={"txn-groups": [{"txn-results": results}]})


def _builder(ledger: FakeLedger, **kwargs) -> SwapBatchBuilder:
    http = httpx.AsyncClient(transport=httpx.MockTransport(ledger.handler))
    client = LedgerClient("http://node.test", client=http)
    assembler = BatchAssembler(PoolRegistry.from_dict(POOLS, TOKENS))
    return SwapBatchBuilder(client, assembler, **kwargs)


def _declared(built):
    declared = set()
    for op in built.operations:
        declared.update(op.references)
    return declared


# ============================================================================
# Swap batches
# ============================================================================

class TestBuildSwap:

    @pytest.mark.asyncio
    async def test_discovered_boxes_are_declared(self):
        ledger = FakeLedger()
        built = await _builder(ledger).build_swap(ROUTE, SENDER)

        assert not built.degraded
        assert built.errors == [] and built.dropped == []
        assert all(box in _declared(built) for box in POOL_BOXES)
        assert all(op.references.count <= MAX_OPERATION_REFERENCES for op in built.operations)
        # the final simulation saw nothing left to declare
        assert len(ledger.simulations) == 2

    @pytest.mark.asyncio
    async def test_batch_is_sealed(self):
        built = await _builder(FakeLedger()).build_swap(ROUTE, SENDER)

        assert built.group_id == compute_group_id(built.operations)
        assert all(op.group == built.group_id for op in built.operations)
        for encoded in built.transactions:
            assert Operation.from_base64(encoded).group == built.group_id

    @pytest.mark.asyncio
    async def test_network_fee(self):
        built = await _builder(FakeLedger()).build_swap(ROUTE, SENDER)
        tags = [op.tag for op in built.operations]
        assert tags == [
            "hop0:deposit-transfer", "hop0:deposit", "hop0:balance-box",
            "hop0:approve", "hop0:swap", "hop0:withdraw",
        ]
        assert built.network_fee == sum(op.fee for op in built.operations) + BALANCE_BOX_COST

    @pytest.mark.asyncio
    async def test_local_state_brings_creator(self):
        ledger = FakeLedger(local_state=True)
        built = await _builder(ledger).build_swap(ROUTE, SENDER)

        declared = _declared(built)
        assert ContractRef(STATE_CONTRACT) in declared
        assert AccountRef(HOLDER) in declared
        assert AccountRef(CREATOR) in declared
        holder_op = next(op for op in built.operations if HOLDER in op.references.accounts)
        assert STATE_CONTRACT in holder_op.references.contracts
        assert not built.degraded

    @pytest.mark.asyncio
    async def test_oversized_batch_simulated_in_chunks(self):
        ledger = FakeLedger(max_group=4)
        built = await _builder(ledger, chunk_size=4).build_swap(ROUTE, SENDER)

        assert not built.degraded
        assert all(len(group) <= 4 for group in ledger.simulations)
        # pool swap sits at index 4; its boxes were found in the [4, 6) slice
        for box in POOL_BOXES:
            holders = [i for i, op in enumerate(built.operations) if box in op.references]
            assert holders and all(i >= 4 for i in holders)

    @pytest.mark.asyncio
    async def test_failed_simulation_degrades(self):
        built = await _builder(FakeLedger(fail_with="overspend")).build_swap(ROUTE, SENDER)

        assert built.degraded
        assert built.errors[0].message == "overspend"
        assert len(built.transactions) == 6
        assert built.group_id == compute_group_id(built.operations)

    @pytest.mark.asyncio
    async def test_to_dict(self):
        built = await _builder(FakeLedger()).build_swap(ROUTE, SENDER)
        data = built.to_dict()
        assert data["networkFee"] == built.network_fee
        assert base64.b64decode(data["groupId"]) == built.group_id
        assert data["degraded"] is False


# ============================================================================
# Platform fee
# ============================================================================

class TestPlatformFee:

    @pytest.mark.asyncio
    async def test_configured_bps_on_min_output(self):
        builder = _builder(FakeLedger(), fee_recipient=FEE_RECIPIENT, fee_bps=50)
        built = await builder.build_swap(ROUTE, SENDER)

        remit = built.operations[-1]
        assert remit.tag == "fee:remit"
        assert remit.receiver == FEE_RECIPIENT
        assert remit.amount == 900_000 * 50 // 10000
        assert built.network_fee == sum(op.fee for op in built.operations) + BALANCE_BOX_COST

    @pytest.mark.asyncio
    async def test_explicit_fee_wins(self):
        builder = _builder(FakeLedger(), fee_recipient=FEE_RECIPIENT, fee_bps=50)
        built = await builder.build_swap(ROUTE, SENDER, PlatformFee(123, FEE_RECIPIENT))
        assert built.operations[-1].amount == 123

    @pytest.mark.asyncio
    async def test_no_fee_without_recipient(self):
        built = await _builder(FakeLedger(), fee_bps=50).build_swap(ROUTE, SENDER)
        assert built.operations[-1].tag == "hop0:withdraw"


# ============================================================================
# Unwrap & configuration
# ============================================================================

class TestBuildUnwrap:

    @pytest.mark.asyncio
    async def test_unwrap_batch(self):
        built = await _builder(FakeLedger()).build_unwrap(SENDER, [(W_USDC, 500), (W_NATIVE, 700)])

        assert [op.contract_id for op in built.operations] == [W_USDC, W_NATIVE]
        assert built.operations[0].references.assets == [USDC]
        assert built.network_fee == sum(op.fee for op in built.operations)
        assert not built.degraded


class TestFromConfig:

    def test_builder_from_config(self, tmp_path):
        pools_path = tmp_path / "pools.json"
        pools_path.write_text(json.dumps(POOLS))
        config = SwapGroupConfig.from_dict({
            "packing": {"max_references": 6, "chunk_size": 3, "max_rounds": 4},
            "platform_fee": {"recipient": FEE_RECIPIENT, "bps": 25},
            "registry": {"pools_path": str(pools_path), "tokens_path": str(tmp_path / "missing.json")},
        })
        builder = SwapBatchBuilder.from_config(config, LedgerClient("http://node.test"))

        assert builder.packer.max_references == 6
        assert builder.chunked.chunk_size == 3
        assert builder.max_rounds == 4
        assert builder.fee_bps == 25
        assert builder.fee_recipient == FEE_RECIPIENT
        assert builder.assembler.registry.get_pool(POOL) is not None
