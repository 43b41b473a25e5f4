"""
Value codecs between Python objects and the column formats of a collection table

- embedding: vector literal text "[1,2.5,3]"
- metadata:  JSON text
- _id:       varbinary, bound as UTF-8 bytes
"""
import json
import math
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .errors import SerializationError


def _format_component(value: Any) -> str:
    if isinstance(value, bool):
        raise SerializationError("Vector components must be numbers, got bool")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Vector component {value!r} is not a number") from e
    if not math.isfinite(number):
        raise SerializationError(f"Vector component {value!r} is not finite")
    # Integral values render without a fractional part: 1.0 -> "1"
    if number.is_integer() and abs(number) < 1e16:
        return str(int(number))
    return repr(number)


def vector_to_string(vector: Sequence[Any]) -> str:
    """
    Encode a vector as the backend's vector literal

    Examples:
        [1.0, 2.5, 3.0] -> "[1,2.5,3]"

    Raises:
        SerializationError: if a component is not a finite number
    """
    if isinstance(vector, np.ndarray):
        vector = vector.tolist()
    return "[" + ",".join(_format_component(v) for v in vector) + "]"


def parse_vector_string(text: Optional[str]) -> List[float]:
    """
    Decode a vector literal. Tokens that are not numbers are skipped.

    Examples:
        "[1,2.5,3]" -> [1.0, 2.5, 3.0]
        "[1,abc,3]" -> [1.0, 3.0]
    """
    if not text:
        return []
    values = []
    for token in text.strip().strip("[]").split(","):
        token = token.strip()
        if not token:
            continue
        try:
            values.append(float(token))
        except ValueError:
            continue
    return values


def metadata_to_json(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    """Serialize a metadata dict to JSON text (None stays None)"""
    if metadata is None:
        return None
    try:
        return json.dumps(metadata, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Metadata is not JSON serializable: {e}") from e


def id_to_bytes(id_val: Any) -> bytes:
    """Encode an id for the varbinary _id column"""
    if isinstance(id_val, bytes):
        return id_val
    return str(id_val).encode("utf-8")


