from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_PRODUCTS = 5

Language = Literal["en", "ko"]


class SkinType(str, Enum):
    DRY = "dry"
    OILY = "oily"
    COMBINATION = "combination"
    SENSITIVE = "sensitive"


class DeliveryOption(str, Enum):
    ONLINE = "online"
    IN_STORE = "in-store"


class ProductSchema(str, Enum):
    """Which fields a model-supplied product must carry to be kept."""

    BASE = "base"
    WITH_IMAGE = "with_image"

    @property
    def required_fields(self) -> tuple[str, ...]:
        base = ("productName", "brand", "price", "productUrl", "explanation")
        if self is ProductSchema.WITH_IMAGE:
            return base + ("imageUrl",)
        return base


class Product(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    product_name: str = Field(alias="productName", min_length=1)
    brand: str = Field(min_length=1)
    price: int = Field(ge=0)
    product_url: str = Field(alias="productUrl", min_length=1)
    explanation: str = ""
    image_url: Optional[str] = Field(default=None, alias="imageUrl")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def _normalize_choice(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower().replace("_", "-").replace(" ", "-")
    return value


class UserPreferences(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    skin_type: SkinType = Field(alias="skinType")
    age: int = Field(ge=0, le=130)
    budget: int = Field(ge=0)
    delivery: DeliveryOption

    @field_validator("skin_type", mode="before")
    @classmethod
    def _skin_type_case(cls, value: Any) -> Any:
        return _normalize_choice(value)

    @field_validator("delivery", mode="before")
    @classmethod
    def _delivery_aliases(cls, value: Any) -> Any:
        normalized = _normalize_choice(value)
        if normalized == "instore":
            return DeliveryOption.IN_STORE.value
        return normalized


class RecommendationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    preferences: UserPreferences
    prompt_text: str = Field(default="", alias="promptText", max_length=2000)
    language: Language = "en"

    @field_validator("language", mode="before")
    @classmethod
    def _language_case(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or "en"
        return value
