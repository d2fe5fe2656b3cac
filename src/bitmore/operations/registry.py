"""Catalog of remote insurance operations."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from bitmore.errors import ConfigurationError


class OperationName(StrEnum):
    FETCH_LOAN_DETAILS = "fetch_Details_for_loan"
    CALCULATE_INSURANCE = "calculate_insurance_details"
    PURCHASE_INSURANCE = "purchase_insurance"
    ROLLOVER_INSURANCE = "rollover_insurance"
    CANCEL_INSURANCE = "cancel_insurance"
    GET_INSURANCE_DETAILS = "get_insurance_details"
    GET_ACTIVE_INSURANCES = "get_all_active_insurances"


class OperationInput(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class LoanInput(OperationInput):
    """Arguments for operations keyed by a loan."""

    loanId: str = Field(..., min_length=1, description="The ID of the loan")


class PurchaseInput(OperationInput):
    """Purchase insurance coverage for a loan."""

    loanId: str = Field(..., min_length=1, description="The ID of the loan to purchase insurance for")
    userAddress: str | None = Field(
        default=None,
        description="Wallet address of the buyer; defaults to the address of the user in this conversation",
    )


class RolloverInput(OperationInput):
    """Roll an existing insurance policy over to a new period."""

    insuranceId: str = Field(..., min_length=1, description="The ID of the insurance policy to rollover")
    newExpiryDate: str = Field(..., description="The new expiry date for the rolled over policy")
    newStrikePrice: float = Field(..., description="The new strike price for the rolled over policy")


class InsuranceInput(OperationInput):
    """Arguments for operations keyed by an insurance policy."""

    insuranceId: str = Field(..., min_length=1, description="The ID of the insurance policy")


class EmptyInput(OperationInput):
    """Empty input payload."""


@dataclass(frozen=True)
class OperationSpec:
    """Operation metadata shared by the decision step and the invoker."""

    name: OperationName
    description: str
    input_model: type[OperationInput]
    method: Literal["GET", "POST"] = "GET"

    @property
    def mutating(self) -> bool:
        return self.method == "POST"

    def parameter_schema(self) -> dict[str, Any]:
        schema = self.input_model.model_json_schema()
        schema.pop("title", None)
        schema.pop("description", None)
        schema.setdefault("properties", {})
        return schema

    def model_tool(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": str(self.name),
                "description": self.description,
                "parameters": self.parameter_schema(),
            },
        }


OPERATIONS: tuple[OperationSpec, ...] = (
    OperationSpec(
        name=OperationName.FETCH_LOAN_DETAILS,
        description="Fetches loan details for a user when provided with the loan ID",
        input_model=LoanInput,
    ),
    OperationSpec(
        name=OperationName.CALCULATE_INSURANCE,
        description="Calculates available insurance details (strike price, expiry date, BTC quantity) for a loan",
        input_model=LoanInput,
    ),
    OperationSpec(
        name=OperationName.PURCHASE_INSURANCE,
        description="Purchases insurance coverage for a loan",
        input_model=PurchaseInput,
        method="POST",
    ),
    OperationSpec(
        name=OperationName.ROLLOVER_INSURANCE,
        description="Extends or rolls over an existing insurance policy",
        input_model=RolloverInput,
        method="POST",
    ),
    OperationSpec(
        name=OperationName.CANCEL_INSURANCE,
        description="Cancels an active insurance policy",
        input_model=InsuranceInput,
        method="POST",
    ),
    OperationSpec(
        name=OperationName.GET_INSURANCE_DETAILS,
        description="Retrieves the active insurance for a loan, if there is one",
        input_model=LoanInput,
    ),
    OperationSpec(
        name=OperationName.GET_ACTIVE_INSURANCES,
        description="Lists all active insurance policies",
        input_model=EmptyInput,
    ),
)


class OperationRegistry:
    """Read-only, ordered registry of operation specs."""

    def __init__(self, specs: Iterable[OperationSpec] = OPERATIONS) -> None:
        self._specs: dict[str, OperationSpec] = {}
        for spec in specs:
            if spec.name in self._specs:
                raise ConfigurationError(f"Duplicate operation name: {spec.name}")
            self._specs[str(spec.name)] = spec

    def specs(self) -> list[OperationSpec]:
        return list(self._specs.values())

    def names(self) -> list[OperationName]:
        return [spec.name for spec in self._specs.values()]

    def get(self, name: str) -> OperationSpec | None:
        return self._specs.get(name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    def model_tools(self) -> list[dict[str, Any]]:
        return [spec.model_tool() for spec in self._specs.values()]
