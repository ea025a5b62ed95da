# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Core typed data structures for hybrid-fg.

This module defines the lightweight key and value containers shared by every
layer of the hybrid inference stack. They store only identifiers and plain
numeric state; all linear algebra happens in the `linear`, `discrete` and
`hybrid` packages.

Types
-----
Key
    Integer identifier of a variable. Continuous and discrete variables share
    one key space so orderings can interleave them.

DiscreteKey
    ``(key, cardinality)`` pair describing a finite-domain variable.

DiscreteValues
    Mapping ``Key -> int`` selecting one value per discrete variable.

VectorValues
    Mapping ``Key -> jnp.ndarray`` holding one 1-D vector per continuous
    variable.

Notes
-----
`symbol()` packs a character and an index into a single integer key, so
``symbol("x", 1) < symbol("x", 2)`` and keys of one character sort
contiguously. Pretty-printing of keys is limited to `key_to_str()`.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, NamedTuple, NewType, Sequence

import jax.numpy as jnp

Key = NewType("Key", int)

DiscreteValues = Dict[Key, int]
VectorValues = Dict[Key, jnp.ndarray]

_CHR_BITS = 8
_INDEX_BITS = 64 - _CHR_BITS
_INDEX_MASK = (1 << _INDEX_BITS) - 1


def symbol(c: str, j: int) -> Key:
    """Pack character ``c`` and index ``j`` into a single integer key."""
    if len(c) != 1:
        raise ValueError(f"symbol character must be a single char, got {c!r}")
    if j < 0 or j > _INDEX_MASK:
        raise ValueError(f"symbol index out of range: {j}")
    return Key((ord(c) << _INDEX_BITS) | j)


def key_to_str(key: int) -> str:
    c = key >> _INDEX_BITS
    if 0 < c < 128 and chr(c).isalpha():
        return f"{chr(c)}{key & _INDEX_MASK}"
    return str(key)


class DiscreteKey(NamedTuple):
    """A finite-domain variable: identifier plus number of values."""
    key: Key
    cardinality: int

    def __str__(self) -> str:
        return f"{key_to_str(self.key)}({self.cardinality})"


def sorted_discrete_keys(keys: Iterable[DiscreteKey]) -> List[DiscreteKey]:
    """
    Deduplicate and sort discrete keys by identifier.

    Two entries for the same identifier must agree on the cardinality.
    """
    by_key: Dict[Key, DiscreteKey] = {}
    for dk in keys:
        dk = DiscreteKey(Key(int(dk[0])), int(dk[1]))
        seen = by_key.get(dk.key)
        if seen is not None and seen.cardinality != dk.cardinality:
            raise ValueError(
                f"Conflicting cardinalities for {key_to_str(dk.key)}: "
                f"{seen.cardinality} vs {dk.cardinality}"
            )
        by_key[dk.key] = dk
    return [by_key[k] for k in sorted(by_key)]


def assignment_to_str(assignment: Mapping[Key, int]) -> str:
    return "{" + ", ".join(
        f"{key_to_str(k)}:{v}" for k, v in sorted(assignment.items())
    ) + "}"


def vector_values_equal(
    a: Mapping[Key, jnp.ndarray],
    b: Mapping[Key, jnp.ndarray],
    tol: float = 1e-9,
) -> bool:
    """Compare two VectorValues key-by-key with an absolute tolerance."""
    if set(a.keys()) != set(b.keys()):
        return False
    for k in a:
        va = jnp.ravel(jnp.asarray(a[k]))
        vb = jnp.ravel(jnp.asarray(b[k]))
        if va.shape != vb.shape:
            return False
        if va.size and float(jnp.max(jnp.abs(va - vb))) > tol:
            return False
    return True


def stack_values(values: Mapping[Key, jnp.ndarray], keys: Sequence[Key]) -> jnp.ndarray:
    """Concatenate the vectors of ``keys`` in order into one flat array."""
    if not keys:
        return jnp.zeros((0,))
    return jnp.concatenate([jnp.ravel(jnp.asarray(values[k])) for k in keys])
