"""Hypothesis strategies for spiders property-based testing.

Usage:
    from tests.strategies import typed_scalars, tensor_arrays
    from hypothesis import given

    @given(typed_scalars())
    def test_my_property(value):
        ...
"""

from __future__ import annotations

import numpy as np
from hypothesis import strategies as st
from hypothesis.extra.numpy import array_shapes, arrays

from spiders.schema.formats import TAG_LENGTH, TENSOR_DTYPES
from spiders.schema.types import TypedValue, integer_bounds

# =============================================================================
# Low-Level Primitives
# =============================================================================

tags = st.text(
    alphabet=st.characters(min_codepoint=0x21, max_codepoint=0x7E),
    min_size=1,
    max_size=TAG_LENGTH,
)

keys = st.text(
    alphabet=st.characters(exclude_categories=("Cs",), exclude_characters="="),
    max_size=40,
)

texts = st.text(alphabet=st.characters(exclude_categories=("Cs",)), max_size=200)


@st.composite
def integers_of(draw, signed: bool, width: int):
    lo, hi = integer_bounds(signed, width)
    value = draw(st.integers(min_value=lo, max_value=hi))
    return TypedValue.signed(value, width) if signed else TypedValue.unsigned(value, width)


# =============================================================================
# Typed Values
# =============================================================================

def typed_scalars():
    """Every scalar kind an Event can carry directly."""
    widths = st.sampled_from([8, 16, 32, 64])
    return st.one_of(
        st.just(TypedValue.null()),
        st.booleans().map(TypedValue.boolean),
        widths.flatmap(lambda w: integers_of(True, w)),
        widths.flatmap(lambda w: integers_of(False, w)),
        st.floats(allow_nan=True, allow_infinity=True).map(TypedValue.float64),
        texts.map(TypedValue.text),
    )


@st.composite
def tensor_arrays(draw, max_dims: int = 4, max_side: int = 4):
    dtype = draw(st.sampled_from(sorted(set(TENSOR_DTYPES.values()), key=str)))
    shape = draw(array_shapes(min_dims=0, max_dims=max_dims, min_side=0, max_side=max_side))
    return draw(arrays(dtype=dtype, shape=shape))


def array_values():
    return tensor_arrays().map(TypedValue.array)


def any_encodable():
    return st.one_of(typed_scalars(), array_values())


__all__ = [
    "tags",
    "keys",
    "texts",
    "integers_of",
    "typed_scalars",
    "tensor_arrays",
    "array_values",
    "any_encodable",
]
