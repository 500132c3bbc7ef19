"""
Swap Batch Example

Builds an unsigned, resource-complete batch for a two-hop route through
wrapped pools and prints what discovery and packing did with it.

Requires a reachable ledger node (see swapgroup.example.toml).
"""

import asyncio
import hashlib

from swapgroup.assembly import BatchAssembler, Hop, PoolRegistry
from swapgroup.builder import SwapBatchBuilder
from swapgroup.config import load_config
from swapgroup.ledger import encode_address
from swapgroup.network import LedgerClient


# Listing in the shape of config/pools.json
POOLS = {
    "pools": [
        {
            "poolId": 1000,
            "dex": "humbleswap",
            "name": "wVOI/wUSDC",
            "tokens": {
                "underlyingToWrapped": {"0": 390001, "302190": 395553},
                "wrappedPair": {"tokA": 390001, "tokB": 395553},
            },
        },
        {
            "poolId": 1001,
            "dex": "humbleswap",
            "name": "wVOI/SHELLY",
            "tokens": {
                "underlyingToWrapped": {"0": 390001},
                "wrappedPair": {"tokA": 390001, "tokB": 410111},
            },
        },
    ]
}

TOKENS = {
    "tokens": {
        "302190": {"symbol": "aUSDC", "decimals": 6, "type": "ASA"},
        "410111": {"symbol": "SHELLY", "decimals": 6, "type": "ARC200"},
    }
}


async def main():
    config = load_config()
    config.validate()

    # Example sender; any 58 character address works for simulation
    sender = encode_address(hashlib.sha256(b"example-sender").digest())

    route = [
        Hop(pool_id=1000, input_token=302190, output_token=0, amount=1_000_000, min_output=900_000),
        Hop(pool_id=1001, input_token=0, output_token=410111, amount=900_000, min_output=1),
    ]

    async with LedgerClient(
        config.ledger.url,
        api_token=config.ledger.api_token,
        token_header=config.ledger.token_header,
        timeout=config.ledger.timeout,
    ) as client:
        builder = SwapBatchBuilder.from_config(config, client, PoolRegistry.from_dict(POOLS, TOKENS))
        built = await builder.build_swap(route, sender)

    print(f"Group id:    {built.group_id.hex()}")
    print(f"Network fee: {built.network_fee}")
    for index, op in enumerate(built.operations):
        print(f"  [{index:2}] {op.tag:<22} fee={op.fee:<6} refs={op.references.count}")
    if built.degraded:
        print("Degraded batch:")
        for ref in built.dropped:
            print(f"  dropped {ref!r}")
        for error in built.errors:
            print(f"  error   {error.message}")


if __name__ == '__main__':
    asyncio.run(main())
