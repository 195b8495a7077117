"""Page/limit handling shared by the list operations."""
import math
from dataclasses import dataclass, field
from typing import Any, Generic, Sequence, TypeVar

from skillswap.errors import ValidationError

T = TypeVar("T")


@dataclass
class PageRequest:
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def validated(self, max_limit: int) -> "PageRequest":
        if self.page < 1:
            raise ValidationError("page must be >= 1", details={"page": self.page})
        if self.limit < 1 or self.limit > max_limit:
            raise ValidationError(f"limit must be between 1 and {max_limit}", details={"limit": self.limit})
        return self


@dataclass
class PageResult(Generic[T]):
    items: Sequence[T]
    total: int
    page: int
    limit: int
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0
