from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, condecimal, model_validator


# --- Numeric primitives ---
PositiveMoney = condecimal(gt=0, max_digits=12, decimal_places=2)
NonNegMoney = condecimal(ge=0, max_digits=12, decimal_places=2)


class PriceRange(BaseModel):
    min: Optional[NonNegMoney] = Field(default=None)
    max: Optional[NonNegMoney] = Field(default=None)

    @model_validator(mode="after")
    def _ordered(self) -> "PriceRange":
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("min must not exceed max")
        return self


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def of(cls, page: int, limit: int, total: int) -> "Pagination":
        pages = (total + limit - 1) // limit if limit else 0
        return cls(page=page, limit=limit, total=total, pages=pages)
