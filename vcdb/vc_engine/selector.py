"""
Structured selectors for VCDB.

A Selector is a conjunction of (field, operator, value) conditions over the
non-bookkeeping attributes of a relation. It is validated against the relation
metadata and compiled to a parameterized SQL fragment, so no caller-provided
text ever reaches the SQL string except as a bound parameter.

Example:
    >>> sel = Selector.where(("id", "=", 1), ("status", "in", ["open", "done"]))
    >>> sel.to_sql(meta)
    ('"id" = ? AND "status" IN (?, ?)', [1, 'open', 'done'])
    >>> Selector.from_mapping({"id": 1})
    Selector(id = 1)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Union

from .errors import SelectorError, UnknownAttributeError
from .schema.types import RelationMeta, is_bookkeeping, quote_ident

COMPARISON_OPERATORS = ("=", "!=", "<", "<=", ">", ">=", "like")
LIST_OPERATORS = ("in", "not in")
NULL_OPERATORS = ("is null", "is not null")
OPERATORS = COMPARISON_OPERATORS + LIST_OPERATORS + NULL_OPERATORS


@dataclass(frozen=True)
class Condition:
    """A single field/operator/value predicate.

    Attributes:
        field: Attribute name
        op: One of OPERATORS (case-insensitive)
        value: Comparison value; a sequence for 'in'/'not in', ignored for null tests
    """

    field: str
    op: str = "="
    value: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "op", " ".join(self.op.lower().split()))
        if self.op in LIST_OPERATORS and not isinstance(self.value, tuple):
            if isinstance(self.value, (str, bytes)) or not isinstance(self.value, Iterable):
                raise SelectorError(
                    f"Operator '{self.op}' requires a sequence of values", field_name=self.field
                )
            object.__setattr__(self, "value", tuple(self.value))

    def validate(self, meta: RelationMeta) -> None:
        if is_bookkeeping(self.field):
            raise SelectorError(
                f"Bookkeeping field '{self.field}' cannot be used in a selector",
                field_name=self.field,
            )
        if not meta.has_column(self.field):
            raise UnknownAttributeError(self.field, meta.name)
        if self.op not in OPERATORS:
            raise SelectorError(f"Unsupported operator '{self.op}'", field_name=self.field)
        if self.op in LIST_OPERATORS and not self.value:
            raise SelectorError(
                f"Operator '{self.op}' requires at least one value", field_name=self.field
            )
        if self.op in COMPARISON_OPERATORS and self.value is None:
            raise SelectorError(
                f"Comparison with NULL for '{self.field}'; use 'is null' instead",
                field_name=self.field,
            )

    def to_sql(self) -> tuple[str, list[Any]]:
        column = quote_ident(self.field)
        if self.op in NULL_OPERATORS:
            return f"{column} {self.op.upper()}", []
        if self.op in LIST_OPERATORS:
            placeholders = ", ".join("?" for _ in self.value)
            return f"{column} {self.op.upper()} ({placeholders})", list(self.value)
        return f"{column} {self.op.upper()} ?", [self.value]

    def __str__(self) -> str:
        if self.op in NULL_OPERATORS:
            return f"{self.field} {self.op}"
        return f"{self.field} {self.op} {self.value!r}"


@dataclass(frozen=True)
class Selector:
    """Conjunction of conditions identifying versioned entities."""

    conditions: tuple[Condition, ...]

    @classmethod
    def where(cls, *conditions: Condition | tuple) -> Selector:
        """Build a selector from Condition objects or (field, op, value) tuples."""
        return cls(tuple(c if isinstance(c, Condition) else Condition(*c) for c in conditions))

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> Selector:
        """Build an equality conjunction; None values become 'is null'."""
        return cls(
            tuple(
                Condition(name, "is null") if value is None else Condition(name, "=", value)
                for name, value in values.items()
            )
        )

    def validate(self, meta: RelationMeta) -> None:
        """Validate every condition against the relation metadata.

        Raises:
            SelectorError: If the selector is empty or a condition is invalid
            UnknownAttributeError: If a field is not part of the relation
        """
        if not self.conditions:
            raise SelectorError(f"Empty selector for relation '{meta.name}'")
        for condition in self.conditions:
            condition.validate(meta)

    def to_sql(self, meta: RelationMeta) -> tuple[str, list[Any]]:
        """Compile to a WHERE fragment and its bound parameters."""
        self.validate(meta)
        fragments = []
        params: list[Any] = []
        for condition in self.conditions:
            fragment, values = condition.to_sql()
            fragments.append(fragment)
            params.extend(values)
        return " AND ".join(fragments), params

    def __str__(self) -> str:
        return " AND ".join(str(c) for c in self.conditions)

    def __repr__(self) -> str:
        return f"Selector({self})"


SelectorLike = Union[Selector, Mapping[str, Any]]


def as_selector(selector: SelectorLike) -> Selector:
    """Coerce a mapping shorthand into a Selector."""
    if isinstance(selector, Selector):
        return selector
    if isinstance(selector, Mapping):
        return Selector.from_mapping(selector)
    raise SelectorError(f"Unsupported selector type: {type(selector).__name__}")
