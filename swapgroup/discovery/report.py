"""
Discovery report model.

Parsed form of one simulation response: what every operation touched
without declaring it, what the batch as a whole touched, and why it failed
if it did.  Parsing never raises; malformed or missing sections simply
yield less information.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..ledger.operations import Operation
from ..ledger.references import AccountRef, AssetRef, BoxRef, ContractRef, Reference

logger = logging.getLogger(__name__)

Scope = Tuple[int, int]


@dataclass
class ExecutionError:
    """One structured failure: the operation (if known) and the message."""
    message: str
    index: Optional[int] = None
    scope: Optional[Scope] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "index": self.index,
                "scope": list(self.scope) if self.scope else None}


@dataclass
class AccessedResources:
    references: List[Reference] = field(default_factory=list)
    local_state: List[Tuple[int, str]] = field(default_factory=list)
    asset_holdings: List[Tuple[int, str]] = field(default_factory=list)

    @classmethod
    def from_response(cls, data: Optional[Dict[str, Any]]) -> "AccessedResources":
        """Parse an ``unnamed-resources-accessed`` section."""
        result = cls()
        if not isinstance(data, dict):
            return result
        refs = result.references
        for box in _entries(data, "boxes"):
            try:
                refs.append(BoxRef(int(box["app"]), base64.b64decode(box.get("name", ""))))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed box entry {box!r}: {e}")
        for key, make in (("apps", lambda v: ContractRef(int(v))),
                          ("assets", lambda v: AssetRef(int(v))),
                          ("accounts", lambda v: AccountRef(str(v)))):
            for value in _entries(data, key):
                try:
                    refs.append(make(value))
                except (TypeError, ValueError):
                    logger.debug(f"Skipping malformed {key} entry {value!r}")
        for local in _entries(data, "app-locals"):
            try:
                result.local_state.append((int(local["app"]), str(local["account"])))
            except (KeyError, TypeError, ValueError):
                logger.debug(f"Skipping malformed local state entry {local!r}")
        for holding in _entries(data, "asset-holdings"):
            try:
                result.asset_holdings.append((int(holding["asset"]), str(holding["account"])))
            except (KeyError, TypeError, ValueError):
                logger.debug(f"Skipping malformed asset holding entry {holding!r}")
        return result


@dataclass
class OperationReport:
    """Per-operation slice of a report; ``index`` is batch-global."""
    index: int
    contract_id: int = 0
    accessed: AccessedResources = field(default_factory=AccessedResources)
    call_trace: str = ""
    logic_trace: str = ""
    error: Optional[str] = None

    @property
    def traces(self) -> List[str]:
        return [t for t in (self.call_trace, self.logic_trace) if t]


@dataclass
class DiscoveryReport:
    operations: List[OperationReport] = field(default_factory=list)
    accessed: AccessedResources = field(default_factory=AccessedResources)
    failure_message: Optional[str] = None
    failed_at: Optional[int] = None
    errors: List[ExecutionError] = field(default_factory=list)
    scope: Optional[Scope] = None

    @property
    def indices(self) -> List[int]:
        return [op.index for op in self.operations]

    def contract_at(self, index: Optional[int]) -> Optional[int]:
        for op in self.operations:
            if op.index == index:
                return op.contract_id or None
        return None

    @classmethod
    def failed(
        cls,
        operations: Sequence[Operation],
        message: str,
        offset: int = 0,
        scope: Optional[Scope] = None,
    ) -> "DiscoveryReport":
        """Report for a simulation that produced no response, only a message."""
        start, end = scope or (offset, offset + len(operations))
        return cls(
            operations=[
                OperationReport(index=offset + i, contract_id=op.contract_id)
                for i, op in enumerate(operations)
            ],
            failure_message=message,
            errors=[ExecutionError(message, scope=(start, end))],
            scope=scope,
        )

    @classmethod
    def from_response(
        cls,
        data: Any,
        operations: Sequence[Operation],
        offset: int = 0,
        scope: Optional[Scope] = None,
    ) -> "DiscoveryReport":
        """
        Parse a simulation response for *operations*, whose first element
        sits at batch position *offset*.
        """
        report = cls(
            operations=[
                OperationReport(index=offset + i, contract_id=op.contract_id)
                for i, op in enumerate(operations)
            ],
            scope=scope,
        )
        try:
            group = data["txn-groups"][0]
        except (KeyError, IndexError, TypeError):
            logger.warning("Simulation response has no transaction group")
            return report
        if not isinstance(group, dict):
            return report

        report.accessed = AccessedResources.from_response(group.get("unnamed-resources-accessed"))

        message = group.get("failure-message")
        if message:
            report.failure_message = str(message)
            failed_at = group.get("failed-at") or []
            if isinstance(failed_at, list) and failed_at and isinstance(failed_at[0], int):
                report.failed_at = offset + failed_at[0]
            report.errors.append(ExecutionError(report.failure_message, report.failed_at, scope))

        results = _entries(group, "txn-results")
        for op_report, result in zip(report.operations, results):
            if not isinstance(result, dict):
                continue
            op_report.accessed = AccessedResources.from_response(result.get("unnamed-resources-accessed"))
            op_report.call_trace = _trace_text(result.get("exec-trace"))
            op_report.logic_trace = _trace_text(
                result.get("app-call-messages") or result.get("logic-sig-messages")
            )
            if report.failed_at == op_report.index:
                op_report.error = report.failure_message

        if len(results) != len(report.operations):
            logger.debug(f"Simulation returned {len(results)} results for {len(report.operations)} operations")
        return report


def _entries(data: Dict[str, Any], key: str) -> List[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        logger.debug(f"Ignoring {key}: expected a list, got {type(value).__name__}")
        return []
    return value


def _trace_text(trace: Any) -> str:
    if not trace:
        return ""
    if isinstance(trace, str):
        return trace
    if isinstance(trace, list) and all(isinstance(t, str) for t in trace):
        return "\n".join(trace)
    return json.dumps(trace, sort_keys=True)
