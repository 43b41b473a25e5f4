"""
Column codec tests - vector literals, metadata JSON and ids
"""
import math

import numpy as np
import pytest

from seekql.client.codec import (
    id_to_bytes,
    metadata_to_json,
    parse_vector_string,
    vector_to_string,
)
from seekql.client.errors import SerializationError


class TestVectorLiteral:
    """Vector <-> "[1,2.5,3]" text"""

    def test_integral_values_have_no_fraction(self):
        assert vector_to_string([1.0, 2.5, 3.0]) == "[1,2.5,3]"
        assert parse_vector_string("[1,2.5,3]") == [1.0, 2.5, 3.0]

    def test_negative_and_small_values(self):
        assert vector_to_string([-1.0, 0.001, -0.5]) == "[-1,0.001,-0.5]"

    def test_numpy_input(self):
        assert vector_to_string(np.array([1.0, 0.25], dtype=np.float32)) == "[1,0.25]"

    def test_empty(self):
        assert vector_to_string([]) == "[]"
        assert parse_vector_string("[]") == []
        assert parse_vector_string(None) == []

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_rejected(self, value):
        with pytest.raises(SerializationError):
            vector_to_string([1.0, value])

    def test_non_numbers_rejected(self):
        with pytest.raises(SerializationError):
            vector_to_string([1.0, "x"])
        with pytest.raises(SerializationError):
            vector_to_string([True, 1.0])

    def test_parse_is_lenient(self):
        """Unparsable tokens are skipped"""
        assert parse_vector_string("[1, abc, 3]") == [1.0, 3.0]
        assert parse_vector_string(" [0.5,,2] ") == [0.5, 2.0]


class TestMetadataAndIds:

    def test_metadata_json_keeps_unicode(self):
        assert metadata_to_json({"city": "北京"}) == '{"city": "北京"}'
        assert metadata_to_json(None) is None

    def test_metadata_not_serializable(self):
        with pytest.raises(SerializationError):
            metadata_to_json({"when": object()})

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_metadata_non_finite_rejected(self, value):
        """NaN / Infinity are not valid JSON"""
        with pytest.raises(SerializationError):
            metadata_to_json({"score": value})
        with pytest.raises(SerializationError):
            metadata_to_json({"nested": {"scores": [1.0, value]}})

    def test_ids_as_utf8_bytes(self):
        assert id_to_bytes("id-1") == b"id-1"
        assert id_to_bytes(b"raw") == b"raw"
        assert id_to_bytes(7) == b"7"
