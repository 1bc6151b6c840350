"""Value Objects for the domain layer.

Value objects are immutable objects that are defined by their attributes
rather than identity.
"""

import re
from dataclasses import dataclass
from typing import Self

from catalog_admin.domain.base import ValueObject
from catalog_admin.domain.exceptions import InvalidProductIdError


# ============================================================================
# Typed Identifiers
# ============================================================================


@dataclass(frozen=True, order=True)
class ProductId(ValueObject):
    """Human-readable sequential product identifier, e.g. ``prod_0042``.

    The numeric suffix is zero-padded to at least ``MIN_WIDTH`` digits.
    Numbers that need more digits widen the identifier rather than
    being truncated, so ``10000`` formats as ``prod_10000``.
    """

    PREFIX = "prod_"
    MIN_WIDTH = 4
    PATTERN = re.compile(r"prod_([0-9]+)")

    number: int

    def __post_init__(self) -> None:
        if self.number < 1:
            raise InvalidProductIdError(f"{self.PREFIX}{self.number}")

    @classmethod
    def from_string(cls, value: str) -> Self:
        """Parse a product identifier.

        Args:
            value: String such as ``prod_0007``.

        Returns:
            ProductId instance.

        Raises:
            InvalidProductIdError: If the string does not match the pattern.
        """
        match = cls.PATTERN.fullmatch(value)
        if match is None:
            raise InvalidProductIdError(value)
        return cls(number=int(match.group(1)))

    @classmethod
    def parse_number(cls, value: str) -> int | None:
        """Extract the numeric suffix, or None for foreign identifiers."""
        match = cls.PATTERN.fullmatch(value)
        if match is None:
            return None
        return int(match.group(1))

    @classmethod
    def first(cls) -> Self:
        """Identifier allocated in an empty catalog."""
        return cls(number=1)

    def next(self) -> Self:
        """Identifier that follows this one."""
        return type(self)(number=self.number + 1)

    def __str__(self) -> str:
        return f"{self.PREFIX}{self.number:0{self.MIN_WIDTH}d}"
