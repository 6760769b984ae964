from decimal import Decimal
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

NonNegative = Annotated[Decimal, Field(ge=0)]


class LineItem(BaseModel):
    name: str = ""
    price: NonNegative
    assigned_to: Optional[int] = None


class Surcharge(BaseModel):
    """Tax or tip added on top of an itemized bill."""

    amount: NonNegative = Decimal("0")
    split_method: Literal["equal", "proportional"] = "proportional"


class EqualSplit(BaseModel):
    method: Literal["equal"] = "equal"


class PercentageSplit(BaseModel):
    method: Literal["percentage"] = "percentage"
    percentages: Dict[int, NonNegative]

    @field_validator("percentages")
    @classmethod
    def not_empty(cls, v):
        if not v:
            raise ValueError("percentages must not be empty")
        return v


class CustomSplit(BaseModel):
    method: Literal["custom"] = "custom"
    amounts: Dict[int, NonNegative]

    @field_validator("amounts")
    @classmethod
    def not_empty(cls, v):
        if not v:
            raise ValueError("amounts must not be empty")
        return v


class ItemizedSplit(BaseModel):
    method: Literal["itemized"] = "itemized"
    items: List[LineItem]
    tax: Optional[Surcharge] = None
    tip: Optional[Surcharge] = None


SplitParams = Annotated[
    Union[EqualSplit, PercentageSplit, CustomSplit, ItemizedSplit],
    Field(discriminator="method"),
]

split_params_adapter = TypeAdapter(SplitParams)


class Split(BaseModel):
    user_id: int
    amount: Decimal
    percentage: Optional[Decimal] = None
    items: List[LineItem] = []
