"""
Validation schemas for reward pool data entering from external sources.

Each pool row is a tagged variant keyed by `generation_method`, with its
own required fields.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from anithing.models.reward import RewardTier


class CatalogName(BaseModel):
    """A named character taken from an existing anime or manga."""

    generation_method: Literal["catalog"]
    name: str = Field(..., min_length=1, max_length=100)
    tier: RewardTier
    source_anime: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    personality: str | None = None


class GeneratedName(BaseModel):
    """An original persona with no source work."""

    generation_method: Literal["generated"]
    name: str = Field(..., min_length=1, max_length=100)
    tier: RewardTier
    description: str = Field(..., min_length=1)
    personality: str = Field(..., min_length=1)


RewardNameRecord = Annotated[
    Union[CatalogName, GeneratedName], Field(discriminator="generation_method")
]

reward_name_records = TypeAdapter(list[RewardNameRecord])
