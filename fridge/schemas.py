import math
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class IngredientBase(BaseModel):
    # every field is optional here; the store decides what is required so
    # that a missing field is a 400 rather than a 422
    name: Optional[str] = Field(
        default=None, json_schema_extra={"example": "tomato"}
    )
    category: Optional[str] = Field(
        default=None, json_schema_extra={"example": "vegetable"}
    )
    quantity: Optional[int] = Field(
        default=None, json_schema_extra={"example": 3}
    )
    unit: Optional[str] = Field(
        default=None, json_schema_extra={"example": "pieces"}
    )
    expiry_date: Optional[date] = Field(
        default=None, json_schema_extra={"example": "2026-10-24"}
    )


class IngredientCreate(IngredientBase):
    pass


class IngredientUpdate(IngredientBase):
    pass


class Ingredient(IngredientBase):
    id: int
    added_date: Optional[datetime] = None
    updated_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RecipeIngredient(BaseModel):
    ingredient_name: str
    quantity: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class Recipe(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    instructions: str
    created_date: Optional[datetime] = None
    ingredients: List[RecipeIngredient] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class Message(BaseModel):
    message: str


def _whole_or(value, default):
    """Mirror the scan screen's ``parseInt(value) || default``."""
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return value
    if isinstance(value, float) and math.isfinite(value):
        value = int(value)
    if value is None or value == 0:
        return default
    return value


class ReceiptItem(BaseModel):
    name: str = Field(min_length=1)
    # "0.5" kg truncates to 0 and then falls back to 1
    quantity: int = Field(default=1, gt=0)
    unit: str = "pieces"
    expiry_days: int = Field(default=3, ge=0)

    @field_validator("quantity", mode="before")
    @classmethod
    def whole_quantity(cls, value):
        return _whole_or(value, 1)

    @field_validator("expiry_days", mode="before")
    @classmethod
    def whole_expiry_days(cls, value):
        return _whole_or(value, 3)


class ReceiptExtractRequest(BaseModel):
    image: str = Field(
        ...,
        description="Receipt image as a base64 data URL",
        json_schema_extra={"example": "data:image/jpeg;base64,/9j/4AAQ..."},
    )
    demo: bool = False


class ReceiptItems(BaseModel):
    items: List[ReceiptItem] = Field(default_factory=list)
