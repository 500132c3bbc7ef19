"""
Ledger node transport.

Thin async client over the node's REST interface:

  GET  /v2/transactions/params    suggested parameters
  POST /v2/transactions/simulate  speculative execution of a group
  GET  /v2/applications/{id}      contract lookup (creator)
  GET  /v2/assets/{id}            asset lookup

Every request is logged as a ``-->`` / ``<--`` pair with status and
elapsed time.
"""

from __future__ import annotations

import base64
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..constants import (
    CONNECTION_TIMEOUT,
    LOG_INCLUDE_REQUEST_CONTENT,
    LOG_MAX_PATH_LENGTH,
    MIN_FEE,
    VALIDITY_WINDOW,
)
from ..exceptions import LookupFailed, NetworkError, PayloadTooLarge, SimulationFailed
from ..logger import get_logger

logger = get_logger(__name__)

DEFAULT_TOKEN_HEADER = "X-Algo-API-Token"


@dataclass
class LedgerParams:
    """Parameters stamped on every assembled operation."""
    first_valid: int
    last_valid: int
    genesis_id: str
    genesis_hash: bytes
    min_fee: int = MIN_FEE

    @classmethod
    def from_response(cls, data: Dict[str, Any], window: int = VALIDITY_WINDOW) -> "LedgerParams":
        try:
            last_round = int(data["last-round"])
            genesis_hash = base64.b64decode(data.get("genesis-hash", ""))
            min_fee = max(int(data.get("min-fee", MIN_FEE)), int(data.get("fee", 0)))
        except (KeyError, TypeError, ValueError) as e:
            raise NetworkError(f"Malformed transaction parameters: {e}") from e
        return cls(
            first_valid=last_round,
            last_valid=last_round + window,
            genesis_id=str(data.get("genesis-id", "")),
            genesis_hash=genesis_hash,
            min_fee=min_fee,
        )


def is_size_rejection(status_code: int, message: str) -> bool:
    return status_code == 413 or "too large" in (message or "").lower()


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
    except (json.JSONDecodeError, ValueError):
        pass
    return response.text or response.reason_phrase


class LedgerClient:
    """
    REST client for one ledger node.

    Usable as an async context manager; an externally owned
    ``httpx.AsyncClient`` can be injected and is then left open on exit.
    """

    def __init__(
        self,
        url: str,
        api_token: str = "",
        token_header: str = DEFAULT_TOKEN_HEADER,
        timeout: float = CONNECTION_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url.rstrip("/")
        self.headers = {token_header: api_token} if api_token else {}
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # -- Request wrapper ----------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """
        Issue one request and log it.

        Returns the response whatever its status; callers decide what a
        status means.

        Raises:
            NetworkError: if the node could not be reached
        """
        url = f"{self.url}{path}"
        log_url = url if len(url) <= LOG_MAX_PATH_LENGTH else url[:LOG_MAX_PATH_LENGTH] + "...[TRUNCATED]"

        body = ""
        if LOG_INCLUDE_REQUEST_CONTENT and kwargs.get("json"):
            body = f"\n\nOutgoing Request:\n\"{json.dumps(kwargs['json'], indent=2)}\"\n"
        logger.info(f"--> \"{method} {log_url} HTTP/1.1\"{body}")

        start_time = time.time()
        try:
            response = await self.client.request(method, url, headers=self.headers, **kwargs)
        except httpx.RequestError as e:
            process_time = time.time() - start_time
            logger.warning(f"<-- \"{method} {log_url} HTTP/1.1\" NETWORK_ERROR ({process_time:.3f}s)")
            raise NetworkError(f"{method} {url} failed: {e}") from e

        process_time = time.time() - start_time
        log = logger.info if response.is_success else logger.warning
        log(f"<-- \"{method} {log_url} HTTP/1.1\" {response.status_code} ({process_time:.3f}s)")
        return response

    # -- Endpoints ----------------------------------------------------------

    async def get_params(self, window: int = VALIDITY_WINDOW) -> LedgerParams:
        """
        Fetch suggested transaction parameters.

        Raises:
            NetworkError: on transport failure or a non-success status
        """
        response = await self._request("GET", "/v2/transactions/params")
        if not response.is_success:
            raise NetworkError(f"Parameter fetch failed ({response.status_code}): {_error_message(response)}")
        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise NetworkError(f"Malformed parameter response: {e}") from e
        return LedgerParams.from_response(data, window)

    async def simulate(self, encoded: List[str]) -> Dict[str, Any]:
        """
        Simulate one group of base64 encoded unsigned operations, with
        undeclared references and empty signatures allowed.

        Returns:
            The node's simulation response

        Raises:
            PayloadTooLarge: the request was rejected purely on size
            SimulationFailed: any other failure, raw message kept
        """
        payload = {
            "txn-groups": [{"txns": list(encoded)}],
            "allow-unnamed-resources": True,
            "allow-empty-signatures": True,
        }
        try:
            response = await self._request("POST", "/v2/transactions/simulate", json=payload)
        except NetworkError as e:
            raise SimulationFailed(str(e)) from e

        if not response.is_success:
            message = _error_message(response)
            if is_size_rejection(response.status_code, message):
                raise PayloadTooLarge(message)
            raise SimulationFailed(message, response.status_code)

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise SimulationFailed(f"Malformed simulation response: {e}", response.status_code) from e
        if not isinstance(data, dict):
            raise SimulationFailed("Malformed simulation response: not an object", response.status_code)
        return data

    async def get_contract_creator(self, contract_id: int) -> str:
        """
        Creator account of a contract.

        Raises:
            LookupFailed: unknown contract, bad response or transport failure
        """
        try:
            response = await self._request("GET", f"/v2/applications/{int(contract_id)}")
        except NetworkError as e:
            raise LookupFailed(f"Contract {contract_id}: {e}") from e
        if not response.is_success:
            raise LookupFailed(f"Contract {contract_id}: {response.status_code} {_error_message(response)}")
        try:
            return str(response.json()["params"]["creator"])
        except (json.JSONDecodeError, ValueError, KeyError, TypeError) as e:
            raise LookupFailed(f"Contract {contract_id}: no creator in response") from e

    async def asset_exists(self, asset_id: int) -> bool:
        """
        Raises:
            LookupFailed: on any failure other than a 404
        """
        try:
            response = await self._request("GET", f"/v2/assets/{int(asset_id)}")
        except NetworkError as e:
            raise LookupFailed(f"Asset {asset_id}: {e}") from e
        if response.status_code == 404:
            return False
        if not response.is_success:
            raise LookupFailed(f"Asset {asset_id}: {response.status_code} {_error_message(response)}")
        return True
