"""
Pool and token registry.

Loads the locally maintained pool listing (``pools.json``) and token
metadata (``tokens.json``).  Pools belong to a venue family:

  - "wrapped": pools trade wrapper-contract tokens; native value and
    ledger assets are deposited into their wrapper before swapping and
    withdrawn after
  - "direct":  pools trade the underlying tokens as-is

Listing names from upstream pool discovery ("humbleswap", "nomadex") are
mapped onto the family names.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..constants import NATIVE_TOKEN_ID
from ..exceptions import ConfigurationError
from .route import TokenKind

logger = logging.getLogger(__name__)

WRAPPED_FAMILY = "wrapped"
DIRECT_FAMILY = "direct"

FAMILY_ALIASES = {
    "wrapped": WRAPPED_FAMILY,
    "humble": WRAPPED_FAMILY,
    "humbleswap": WRAPPED_FAMILY,
    "direct": DIRECT_FAMILY,
    "nomadex": DIRECT_FAMILY,
}


@dataclass
class PoolConfig:
    """One pool of the listing."""
    pool_id: int
    family: str
    token_a: int
    token_b: int
    name: str = ""
    fee_bps: int = 0
    underlying_to_wrapped: Dict[int, int] = field(default_factory=dict)
    token_kinds: Dict[int, TokenKind] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PoolConfig":
        pool_id = int(data["poolId"] if "poolId" in data else data["pool_id"])
        raw_family = str(data.get("family") or data.get("dex") or WRAPPED_FAMILY).lower()
        family = FAMILY_ALIASES.get(raw_family)
        if family is None:
            raise ConfigurationError(f"Pool {pool_id}: unknown venue family {raw_family!r}")

        tokens = data.get("tokens", {})
        if family == WRAPPED_FAMILY:
            pair = tokens.get("wrappedPair", {})
            u2w = {int(k): int(v) for k, v in tokens.get("underlyingToWrapped", {}).items()}
            return cls(
                pool_id=pool_id,
                family=family,
                token_a=int(pair["tokA"]),
                token_b=int(pair["tokB"]),
                name=data.get("name", ""),
                fee_bps=int(data.get("fee", 0)),
                underlying_to_wrapped=u2w,
            )

        tok_a, tok_b = tokens.get("tokA", {}), tokens.get("tokB", {})
        kinds = {}
        for tok in (tok_a, tok_b):
            kind = TokenKind.parse(tok.get("type"))
            if kind is not None:
                kinds[int(tok["id"])] = kind
        return cls(
            pool_id=pool_id,
            family=family,
            token_a=int(tok_a["id"]),
            token_b=int(tok_b["id"]),
            name=data.get("name", ""),
            fee_bps=int(data.get("fee", 0)),
            token_kinds=kinds,
        )

    def wrapped_id(self, token_id: int) -> Optional[int]:
        """
        Pool-side identity of *token_id*; None for families that trade
        underlying tokens directly.
        """
        if self.family != WRAPPED_FAMILY:
            return None
        return self.underlying_to_wrapped.get(token_id, token_id)

    def trades(self, token_in: int, token_out: int) -> bool:
        if self.family == WRAPPED_FAMILY:
            a, b = self.wrapped_id(token_in), self.wrapped_id(token_out)
        else:
            a, b = token_in, token_out
        return {a, b} == {self.token_a, self.token_b} and a != b

    def is_a_to_b(self, token_in: int) -> bool:
        side = self.wrapped_id(token_in) if self.family == WRAPPED_FAMILY else token_in
        return side == self.token_a


class PoolRegistry:
    """In-memory view of the pool listing and token metadata."""

    def __init__(self, pools: Iterable[PoolConfig] = (), tokens: Optional[Dict[int, Dict[str, Any]]] = None):
        self._pools: Dict[int, PoolConfig] = {p.pool_id: p for p in pools}
        self._tokens: Dict[int, Dict[str, Any]] = dict(tokens or {})

    @classmethod
    def from_dict(cls, pools_data: Dict[str, Any], tokens_data: Optional[Dict[str, Any]] = None) -> "PoolRegistry":
        if not isinstance(pools_data.get("pools"), list):
            raise ConfigurationError("Pool listing must contain a 'pools' array")
        pools = []
        for index, entry in enumerate(pools_data["pools"]):
            try:
                pools.append(PoolConfig.from_dict(entry))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise ConfigurationError(f"Malformed pool listing entry {index}: {e!r}") from e
        try:
            tokens = {int(k): v for k, v in (tokens_data or {}).get("tokens", {}).items()}
        except (AttributeError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Malformed token metadata: {e!r}") from e
        return cls(pools, tokens)

    @classmethod
    def from_files(cls, pools_path: str, tokens_path: Optional[str] = None) -> "PoolRegistry":
        path = Path(pools_path)
        if not path.exists():
            raise ConfigurationError(f"Pool listing not found: {pools_path}")
        with open(path, "r", encoding="utf-8") as f:
            pools_data = json.load(f)

        tokens_data = None
        if tokens_path:
            tpath = Path(tokens_path)
            if tpath.exists():
                with open(tpath, "r", encoding="utf-8") as f:
                    tokens_data = json.load(f)
            else:
                logger.warning("Token metadata not found: %s", tokens_path)

        registry = cls.from_dict(pools_data, tokens_data)
        logger.info(f"Loaded {len(registry)} pools from {pools_path}")
        return registry

    def __len__(self) -> int:
        return len(self._pools)

    def get_pool(self, pool_id: int) -> Optional[PoolConfig]:
        return self._pools.get(int(pool_id))

    def find_pools(self, token_in: int, token_out: int, families: Optional[Iterable[str]] = None) -> List[PoolConfig]:
        allowed = {FAMILY_ALIASES.get(f.lower(), f.lower()) for f in families} if families else None
        return [
            pool for pool in self._pools.values()
            if (allowed is None or pool.family in allowed) and pool.trades(token_in, token_out)
        ]

    # -- Tokens -------------------------------------------------------------

    def token_meta(self, token_id: int) -> Optional[Dict[str, Any]]:
        return self._tokens.get(int(token_id))

    def token_kind(self, token_id: int, pool: Optional[PoolConfig] = None) -> Optional[TokenKind]:
        """Kind of *token_id*; None if nothing in the registry says."""
        if token_id == NATIVE_TOKEN_ID:
            return TokenKind.NATIVE
        if pool is not None and token_id in pool.token_kinds:
            return pool.token_kinds[token_id]
        meta = self._tokens.get(token_id)
        if meta is not None:
            kind = TokenKind.parse(meta.get("type"))
            if kind is not None:
                return kind
        for candidate in self._pools.values():
            if token_id in candidate.token_kinds:
                return candidate.token_kinds[token_id]
            if token_id in candidate.underlying_to_wrapped.values():
                return TokenKind.CONTRACT
            wrapped = candidate.underlying_to_wrapped.get(token_id)
            if wrapped is not None and wrapped != token_id:
                # anything but the native token behind a wrapper is an asset
                return TokenKind.ASSET
        return None

    def underlying_of(self, wrapped_id: int) -> Optional[int]:
        """Underlying token a wrapper contract stands in for."""
        for pool in self._pools.values():
            for underlying, wrapped in pool.underlying_to_wrapped.items():
                if wrapped == wrapped_id:
                    return underlying
        return None
