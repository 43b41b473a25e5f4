"""
Filter AST for metadata and document filtering

Metadata filters:  Eq, Ne, Gt, Gte, Lt, Lte, In, Nin combined with And, Or, Not
Document filters:  Contains, Regex combined with DocAnd, DocOr

Nodes can be built directly, with the fluent helpers or from Chroma-style
dictionaries:

    >>> Eq("category", "AI") & (K("score") >= 90)
    >>> DOCUMENT.contains("machine learning") | DOCUMENT.contains("python")
    >>> parse_where({"$and": [{"category": "AI"}, {"score": {"$gte": 90}}]})
    >>> parse_where_document({"$contains": "machine learning"})

Field names are used verbatim inside JSON path expressions and are not escaped.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import numpy as np

from .errors import InvalidInputError

Scalar = Union[str, int, float, bool, None]

_SCALAR_TYPES = (str, int, float, bool, type(None))


def _check_scalar(field: str, value: Any) -> Scalar:
    """Return value as a plain Python scalar; numpy scalars are unwrapped"""
    if isinstance(value, np.generic):
        value = value.item()
    if not isinstance(value, _SCALAR_TYPES):
        raise InvalidInputError(
            f"Filter value for field '{field}' must be a string, number, bool or None, "
            f"got {type(value).__name__}"
        )
    return value


# ==================== Metadata Filters ====================

class Filter:
    """Base class of metadata filter nodes"""

    def __and__(self, other: "Filter") -> "Filter":
        if not isinstance(other, Filter):
            return NotImplemented
        return And((self, other))

    def __or__(self, other: "Filter") -> "Filter":
        if not isinstance(other, Filter):
            return NotImplemented
        return Or((self, other))

    def __invert__(self) -> "Filter":
        return Not(self)


@dataclass(frozen=True)
class _Comparison(Filter):
    field: str
    value: Scalar

    def __post_init__(self):
        object.__setattr__(self, "value", _check_scalar(self.field, self.value))


@dataclass(frozen=True)
class Eq(_Comparison):
    pass


@dataclass(frozen=True)
class Ne(_Comparison):
    pass


@dataclass(frozen=True)
class Gt(_Comparison):
    pass


@dataclass(frozen=True)
class Gte(_Comparison):
    pass


@dataclass(frozen=True)
class Lt(_Comparison):
    pass


@dataclass(frozen=True)
class Lte(_Comparison):
    pass


@dataclass(frozen=True)
class _Membership(Filter):
    field: str
    values: Tuple[Scalar, ...]

    def __post_init__(self):
        if isinstance(self.values, (str, bytes)) or not isinstance(self.values, Iterable):
            raise InvalidInputError(
                f"Values for field '{self.field}' must be a list, got {type(self.values).__name__}"
            )
        values = tuple(_check_scalar(self.field, value) for value in self.values)
        object.__setattr__(self, "values", values)


@dataclass(frozen=True)
class In(_Membership):
    pass


@dataclass(frozen=True)
class Nin(_Membership):
    pass


@dataclass(frozen=True)
class And(Filter):
    filters: Tuple[Filter, ...]

    def __post_init__(self):
        object.__setattr__(self, "filters", _check_children(self.filters, Filter, "And"))


@dataclass(frozen=True)
class Or(Filter):
    filters: Tuple[Filter, ...]

    def __post_init__(self):
        object.__setattr__(self, "filters", _check_children(self.filters, Filter, "Or"))


@dataclass(frozen=True)
class Not(Filter):
    inner: Filter

    def __post_init__(self):
        if not isinstance(self.inner, Filter):
            raise InvalidInputError(f"Not expects a Filter, got {type(self.inner).__name__}")


# ==================== Document Filters ====================

class DocFilter:
    """Base class of document filter nodes"""

    def __and__(self, other: "DocFilter") -> "DocFilter":
        if not isinstance(other, DocFilter):
            return NotImplemented
        return DocAnd((self, other))

    def __or__(self, other: "DocFilter") -> "DocFilter":
        if not isinstance(other, DocFilter):
            return NotImplemented
        return DocOr((self, other))


@dataclass(frozen=True)
class Contains(DocFilter):
    text: str

    def __post_init__(self):
        if not isinstance(self.text, str):
            raise InvalidInputError(f"Contains expects a string, got {type(self.text).__name__}")


@dataclass(frozen=True)
class Regex(DocFilter):
    pattern: str

    def __post_init__(self):
        if not isinstance(self.pattern, str):
            raise InvalidInputError(f"Regex expects a string, got {type(self.pattern).__name__}")


@dataclass(frozen=True)
class DocAnd(DocFilter):
    filters: Tuple[DocFilter, ...]

    def __post_init__(self):
        object.__setattr__(self, "filters", _check_children(self.filters, DocFilter, "DocAnd"))


@dataclass(frozen=True)
class DocOr(DocFilter):
    filters: Tuple[DocFilter, ...]

    def __post_init__(self):
        object.__setattr__(self, "filters", _check_children(self.filters, DocFilter, "DocOr"))


def _check_children(children: Any, kind: type, name: str) -> tuple:
    if isinstance(children, (kind, str, dict)) or not isinstance(children, Iterable):
        raise InvalidInputError(f"{name} expects a list of {kind.__name__} nodes")
    children = tuple(children)
    for child in children:
        if not isinstance(child, kind):
            raise InvalidInputError(
                f"{name} expects {kind.__name__} children, got {type(child).__name__}"
            )
    return children


# ==================== Dictionary Parsing ====================

_COMPARISON_OPERATORS = {
    "$eq": Eq,
    "$ne": Ne,
    "$gt": Gt,
    "$gte": Gte,
    "$lt": Lt,
    "$lte": Lte,
}

_MEMBERSHIP_OPERATORS = {
    "$in": In,
    "$nin": Nin,
}


def parse_where(where: Optional[Dict[str, Any]]) -> Optional[Filter]:
    """
    Parse a Chroma-style metadata filter dictionary into a Filter

    Supported forms:
        {"field": value}                          -> Eq
        {"field": {"$gte": 18, "$lt": 65}}        -> And(Gte, Lt)
        {"field": {"$in": [...]}} / {"$nin": ...} -> In / Nin
        {"$and": [...]}, {"$or": [...]}, {"$not": {...}}

    Several keys in one dictionary are AND-ed together.

    Returns:
        Filter, or None for an empty dictionary

    Raises:
        InvalidInputError: on unknown operators or malformed operands
    """
    if where is None:
        return None
    if not isinstance(where, dict):
        raise InvalidInputError(f"where must be a dict, got {type(where).__name__}")

    conditions = []
    for key, value in where.items():
        if key in ("$and", "$or"):
            if not isinstance(value, (list, tuple)):
                raise InvalidInputError(f"{key} expects a list of conditions")
            children = [c for c in (parse_where(sub) for sub in value) if c is not None]
            if children:
                conditions.append(And(children) if key == "$and" else Or(children))
        elif key == "$not":
            child = parse_where(value)
            if child is not None:
                conditions.append(Not(child))
        elif key.startswith("$"):
            raise InvalidInputError(f"Unknown logical operator: {key}")
        elif isinstance(value, dict):
            conditions.extend(_parse_field_operators(key, value))
        else:
            conditions.append(Eq(key, value))

    if not conditions:
        return None
    if len(conditions) == 1:
        return conditions[0]
    return And(conditions)


def _parse_field_operators(field: str, operators: Dict[str, Any]) -> list:
    conditions = []
    for op, operand in operators.items():
        if op in _COMPARISON_OPERATORS:
            conditions.append(_COMPARISON_OPERATORS[op](field, operand))
        elif op in _MEMBERSHIP_OPERATORS:
            if not isinstance(operand, (list, tuple)):
                raise InvalidInputError(f"{op} on field '{field}' expects a list")
            conditions.append(_MEMBERSHIP_OPERATORS[op](field, operand))
        else:
            raise InvalidInputError(f"Unknown operator '{op}' on field '{field}'")
    return conditions


def parse_where_document(where_document: Union[None, str, Dict[str, Any]]) -> Optional[DocFilter]:
    """
    Parse a Chroma-style document filter into a DocFilter

    Supported forms: "text" (same as $contains), {"$contains": text},
    {"$regex": pattern}, {"$and": [...]}, {"$or": [...]}
    """
    if where_document is None:
        return None
    if isinstance(where_document, str):
        return Contains(where_document)
    if not isinstance(where_document, dict):
        raise InvalidInputError(
            f"where_document must be a dict or string, got {type(where_document).__name__}"
        )

    conditions = []
    for key, value in where_document.items():
        if key == "$contains":
            conditions.append(Contains(value))
        elif key == "$regex":
            conditions.append(Regex(value))
        elif key in ("$and", "$or"):
            if not isinstance(value, (list, tuple)):
                raise InvalidInputError(f"{key} expects a list of document conditions")
            children = [c for c in (parse_where_document(sub) for sub in value) if c is not None]
            if children:
                conditions.append(DocAnd(children) if key == "$and" else DocOr(children))
        else:
            raise InvalidInputError(f"Unknown document operator: {key}")

    if not conditions:
        return None
    if len(conditions) == 1:
        return conditions[0]
    return DocAnd(conditions)


WhereParam = Union[None, Filter, Dict[str, Any]]
WhereDocumentParam = Union[None, DocFilter, str, Dict[str, Any]]


def as_filter(where: WhereParam) -> Optional[Filter]:
    """Accept a Filter, a filter dictionary or None"""
    if where is None or isinstance(where, Filter):
        return where
    if isinstance(where, dict):
        return parse_where(where)
    raise InvalidInputError(f"where must be a Filter or dict, got {type(where).__name__}")


def as_doc_filter(where_document: WhereDocumentParam) -> Optional[DocFilter]:
    """Accept a DocFilter, a document filter dictionary, a plain string or None"""
    if where_document is None or isinstance(where_document, DocFilter):
        return where_document
    if isinstance(where_document, (dict, str)):
        return parse_where_document(where_document)
    raise InvalidInputError(
        f"where_document must be a DocFilter, dict or string, got {type(where_document).__name__}"
    )


def combine_filters(first: Optional[Filter], second: Optional[Filter]) -> Optional[Filter]:
    """AND two optional filters, returning whichever exists when only one does"""
    if first is None:
        return second
    if second is None:
        return first
    return And((first, second))


# ==================== Fluent Helpers ====================

class MetadataField:
    """Comparison builder for one metadata key, created with K("key")"""

    __hash__ = None  # type: ignore[assignment]

    def __init__(self, key: str):
        self.key = key

    def __eq__(self, other: Any) -> Filter:  # type: ignore[override]
        return Eq(self.key, other)

    def __ne__(self, other: Any) -> Filter:  # type: ignore[override]
        return Ne(self.key, other)

    def __lt__(self, other: Any) -> Filter:
        return Lt(self.key, other)

    def __le__(self, other: Any) -> Filter:
        return Lte(self.key, other)

    def __gt__(self, other: Any) -> Filter:
        return Gt(self.key, other)

    def __ge__(self, other: Any) -> Filter:
        return Gte(self.key, other)

    def is_in(self, values: Iterable[Any]) -> Filter:
        return In(self.key, tuple(values))

    def not_in(self, values: Iterable[Any]) -> Filter:
        return Nin(self.key, tuple(values))

    def __repr__(self) -> str:
        return f"K({self.key!r})"


def K(key: str) -> MetadataField:
    """Reference a metadata key for building filters"""
    return MetadataField(key)


class _DocumentBuilder:
    def contains(self, text: str) -> DocFilter:
        return Contains(text)

    def regex(self, pattern: str) -> DocFilter:
        return Regex(pattern)

    def __repr__(self) -> str:
        return "DOCUMENT"


DOCUMENT = _DocumentBuilder()
