"""
Typed filter settings for the Expense and Product lists.

Filters are plain pydantic models built from query parameters. Blank values
mean "no filter". Shared by the API handlers and the client view-models.
"""

import datetime
import logging
import re
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError, field_validator, model_validator

from errors import ValidationError

logger = logging.getLogger(__name__)

SortField = Literal["price", "quantity"]
SORT_FIELDS = ("price", "quantity")


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


class ExpenseFilter(BaseModel):
    category: Optional[str] = None
    from_date: Optional[datetime.date] = None
    to_date: Optional[datetime.date] = None

    @field_validator("category", "from_date", "to_date", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @model_validator(mode="after")
    def check_range(self) -> "ExpenseFilter":
        if self.from_date and self.to_date and self.from_date > self.to_date:
            raise ValueError("'from' must not be after 'to'")
        return self

    @property
    def has_range(self) -> bool:
        # A lone bound is ignored
        return self.from_date is not None and self.to_date is not None

    def to_query(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if self.category:
            query["category"] = self.category
        if self.has_range:
            query["date"] = {"$gte": self.from_date.isoformat(), "$lte": self.to_date.isoformat()}
        return query

    def to_params(self) -> Dict[str, str]:
        params: Dict[str, str] = {}
        if self.category:
            params["category"] = self.category
        if self.has_range:
            params["from"] = self.from_date.isoformat()
            params["to"] = self.to_date.isoformat()
        return params


class ProductFilter(BaseModel):
    search: Optional[str] = None
    category: Optional[str] = None
    sort: Optional[SortField] = None

    @field_validator("search", "category", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("sort", mode="before")
    @classmethod
    def known_sort(cls, v: Any) -> Optional[str]:
        if v not in SORT_FIELDS:
            if v:
                logger.debug("Ignoring unknown product sort %r", v)
            return None
        return v

    def to_query(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if self.search:
            query["productName"] = {"$regex": re.escape(self.search), "$options": "i"}
        if self.category:
            query["category"] = self.category
        return query

    def to_params(self) -> Dict[str, str]:
        params: Dict[str, str] = {}
        if self.search:
            params["search"] = self.search
        if self.category:
            params["category"] = self.category
        if self.sort:
            params["sort"] = self.sort
        return params


def parse_filter(model, **params):
    """Build a filter model, reporting bad parameters as a ValidationError."""
    try:
        return model(**params)
    except PydanticValidationError as e:
        errors = {".".join(str(p) for p in err["loc"]) or "query": err["msg"] for err in e.errors()}
        raise ValidationError("Invalid query parameters", errors=errors)
