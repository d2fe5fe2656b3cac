"""Observability for the purchase confirmation protocol.

The protocol (fetch loan, check for an active insurance, calculate terms, then
purchase) is only asked of the model in the synthesis prompt, and each step
waits for a user confirmation, so a correct purchase lands in a later turn
than its lookups. The audit therefore remembers, per conversation, which loans
were looked up in earlier turns of this process and flags a purchase whose
loan was not. Memory starts empty on restart. Violations are logged, never
blocking.
"""

from __future__ import annotations

import json
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from bitmore.core.types import OperationInvocationRequest
from bitmore.operations.registry import OperationName

_PURCHASE_PREREQUISITES = (OperationName.FETCH_LOAN_DETAILS, OperationName.GET_INSURANCE_DETAILS)


@dataclass(frozen=True)
class ProtocolViolation:
    operation: str
    missing: str
    loan_id: str | None = None

    def describe(self) -> str:
        return f"{self.operation} for loan {self.loan_id or '?'} requested without an earlier {self.missing}"


def _loan_id(request: OperationInvocationRequest) -> str | None:
    try:
        arguments = json.loads(request.raw_arguments or "{}")
    except json.JSONDecodeError:
        return None
    if not isinstance(arguments, dict):
        return None
    loan_id = arguments.get("loanId")
    return loan_id if isinstance(loan_id, str) else None


class ProtocolAudit:
    """Tracks loan lookups per conversation and flags purchases that skip them."""

    def __init__(self) -> None:
        self._seen: defaultdict[str, defaultdict[str, set[str]]] = defaultdict(lambda: defaultdict(set))

    def check(self, conversation_id: str, requests: Sequence[OperationInvocationRequest]) -> list[ProtocolViolation]:
        seen = self._seen[conversation_id]
        for request in requests:
            if request.name in _PURCHASE_PREREQUISITES and (loan_id := _loan_id(request)) is not None:
                seen[str(request.name)].add(loan_id)

        violations: list[ProtocolViolation] = []
        for request in requests:
            if request.name != OperationName.PURCHASE_INSURANCE:
                continue
            loan_id = _loan_id(request)
            violations.extend(
                ProtocolViolation(operation=OperationName.PURCHASE_INSURANCE, missing=prerequisite, loan_id=loan_id)
                for prerequisite in _PURCHASE_PREREQUISITES
                if loan_id is None or loan_id not in seen[str(prerequisite)]
            )
        return violations

    def log_violations(
        self, conversation_id: str, requests: Sequence[OperationInvocationRequest]
    ) -> list[ProtocolViolation]:
        violations = self.check(conversation_id, requests)
        for violation in violations:
            logger.warning("protocol.violation {}", violation.describe())
        return violations
