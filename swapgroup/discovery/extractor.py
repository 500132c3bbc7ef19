"""
Discovery extractor.

Folds simulation reports into one deduplicated DiscoverySet.

Sources, in order:

  - the access sections of each report (per operation, then per batch)
  - failure text: the batch failure message, each operation's call and
    logic traces, and the raw message of a failed simulation.  Two
    patterns are recognised:

        unavailable App <id>[. Details: app=<caller>]
        unavailable Local State <contract>+<address>

Local state pairs additionally need the contract's creator account;
:func:`resolve_creators` looks those up concurrently.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from ..exceptions import LookupFailed
from ..ledger.references import AccountRef, AssetRef, BoxRef, ContractRef, Reference
from ..logger import get_logger
from .report import DiscoveryReport, ExecutionError, Scope

logger = get_logger(__name__)

MISSING_CONTRACT = re.compile(r"unavailable App (?P<contract>\d+)(?:\.?\s*Details:\s*app=(?P<caller>\d+))?")
MISSING_LOCAL_STATE = re.compile(r"unavailable Local State (?P<contract>\d+)\+(?P<account>[A-Z2-7]{58})")


@dataclass
class TextFindings:
    contracts: List[Tuple[int, Optional[int]]] = field(default_factory=list)
    local_state: List[Tuple[int, str]] = field(default_factory=list)


def extract_text(text: Optional[str]) -> TextFindings:
    """
    Missing contracts (with the caller, when named) and missing local state
    pairs mentioned in *text*.
    """
    findings = TextFindings()
    if not text:
        return findings
    for match in MISSING_CONTRACT.finditer(text):
        caller = match.group("caller")
        findings.contracts.append((int(match.group("contract")), int(caller) if caller else None))
    for match in MISSING_LOCAL_STATE.finditer(text):
        findings.local_state.append((int(match.group("contract")), match.group("account")))
    return findings


@dataclass
class DiscoverySet:
    """
    Deduplicated references discovered for one batch.

    ``scopes`` maps a reference to the index ranges it was found in when it
    came from a partial simulation; a reference absent from ``scopes`` is
    needed batch-wide.
    """
    boxes: List[BoxRef] = field(default_factory=list)
    contracts: List[int] = field(default_factory=list)
    assets: List[int] = field(default_factory=list)
    accounts: List[str] = field(default_factory=list)
    errors: List[ExecutionError] = field(default_factory=list)
    account_hints: Dict[str, int] = field(default_factory=dict)
    contract_hints: Dict[int, List[int]] = field(default_factory=dict)
    local_state: List[Tuple[int, str]] = field(default_factory=list)
    scopes: Dict[Reference, List[Scope]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.boxes) + len(self.contracts) + len(self.assets) + len(self.accounts)

    def __iter__(self) -> Iterator[Reference]:
        yield from self.boxes
        for contract_id in self.contracts:
            yield ContractRef(contract_id)
        for asset_id in self.assets:
            yield AssetRef(asset_id)
        for address in self.accounts:
            yield AccountRef(address)

    def __contains__(self, ref: object) -> bool:
        if isinstance(ref, BoxRef):
            return ref in self.boxes
        if isinstance(ref, ContractRef):
            return ref.contract_id in self.contracts
        if isinstance(ref, AssetRef):
            return ref.asset_id in self.assets
        if isinstance(ref, AccountRef):
            return ref.address in self.accounts
        return False

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    def scopes_of(self, ref: Reference) -> List[Optional[Scope]]:
        """Index ranges *ref* must be reachable from; ``[None]`` means batch-wide."""
        return list(self.scopes.get(ref) or [None])

    def add(self, ref: Reference, scope: Optional[Scope] = None) -> bool:
        """Record *ref*; returns True if it was not known yet."""
        is_new = ref not in self
        if is_new:
            if isinstance(ref, BoxRef):
                self.boxes.append(ref)
            elif isinstance(ref, ContractRef):
                self.contracts.append(ref.contract_id)
            elif isinstance(ref, AssetRef):
                self.assets.append(ref.asset_id)
            else:
                self.accounts.append(ref.address)
            if scope is not None:
                self.scopes[ref] = [scope]
        elif ref in self.scopes:
            # batch-wide discovery subsumes any scoped one
            if scope is None:
                del self.scopes[ref]
            elif scope not in self.scopes[ref]:
                self.scopes[ref].append(scope)
        return is_new

    def hint_contract(self, contract_id: int, caller: Optional[int]) -> None:
        if caller is None or caller == contract_id:
            return
        callers = self.contract_hints.setdefault(contract_id, [])
        if caller not in callers:
            callers.append(caller)

    def add_local_state(self, contract_id: int, account: str, scope: Optional[Scope] = None) -> None:
        self.add(ContractRef(contract_id), scope)
        self.add(AccountRef(account), scope)
        self.account_hints[account] = contract_id
        if (contract_id, account) not in self.local_state:
            self.local_state.append((contract_id, account))


class DiscoveryExtractor:
    """Reports to DiscoverySet.  Never raises on malformed input."""

    def extract(self, reports: Iterable[DiscoveryReport]) -> DiscoverySet:
        discovery = DiscoverySet()
        for report in reports:
            self._extract_report(discovery, report)
        if not discovery.is_empty:
            logger.info(
                f"Discovered {len(discovery.boxes)} boxes, {len(discovery.contracts)} contracts, "
                f"{len(discovery.assets)} assets, {len(discovery.accounts)} accounts"
            )
        return discovery

    def _extract_report(self, discovery: DiscoverySet, report: DiscoveryReport) -> None:
        scope = report.scope
        discovery.errors.extend(report.errors)

        for op in report.operations:
            self._add_accessed(discovery, op.accessed, scope, op.contract_id or None)
            for text in op.traces:
                self._add_text(discovery, text, scope, op.contract_id or None)
            if op.error and op.error != report.failure_message:
                discovery.errors.append(ExecutionError(op.error, op.index, scope))

        self._add_accessed(discovery, report.accessed, scope, None)
        if report.failure_message:
            self._add_text(discovery, report.failure_message, scope, report.contract_at(report.failed_at))

    def _add_accessed(self, discovery: DiscoverySet, accessed, scope, target: Optional[int]) -> None:
        for ref in accessed.references:
            discovery.add(ref, scope)
            if isinstance(ref, AccountRef) and target is not None:
                discovery.account_hints.setdefault(ref.address, target)
        for contract_id, account in accessed.local_state:
            discovery.add_local_state(contract_id, account, scope)
        for asset_id, account in accessed.asset_holdings:
            discovery.add(AssetRef(asset_id), scope)
            discovery.add(AccountRef(account), scope)

    def _add_text(self, discovery: DiscoverySet, text: str, scope, default_caller: Optional[int]) -> None:
        findings = extract_text(text)
        for contract_id, caller in findings.contracts:
            discovery.add(ContractRef(contract_id), scope)
            discovery.hint_contract(contract_id, caller if caller is not None else default_caller)
        for contract_id, account in findings.local_state:
            discovery.add_local_state(contract_id, account, scope)


async def resolve_creators(discovery: DiscoverySet, client) -> int:
    """
    Add the creator account of every contract with discovered local state,
    hinted to that contract.  Lookups run concurrently; a failed lookup is
    logged and skipped.

    Returns:
        Number of creator accounts added
    """
    contract_ids: List[int] = []
    for contract_id, _ in discovery.local_state:
        if contract_id not in contract_ids:
            contract_ids.append(contract_id)
    if not contract_ids:
        return 0

    results = await asyncio.gather(
        *(client.get_contract_creator(contract_id) for contract_id in contract_ids),
        return_exceptions=True,
    )

    added = 0
    for contract_id, result in zip(contract_ids, results):
        if isinstance(result, LookupFailed):
            logger.warning(f"Creator lookup for contract {contract_id} failed: {result}")
            continue
        if isinstance(result, BaseException):
            raise result
        ref = AccountRef(result)
        for scope in discovery.scopes_of(ContractRef(contract_id)):
            if discovery.add(ref, scope):
                added += 1
        discovery.account_hints[result] = contract_id
    return added

