# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Persistence of hybrid Bayes nets and Bayes trees.

Three encodings share one intermediate *state*, a tree of plain dicts,
lists, strings, ints, floats and ``None``:

    to_state / from_state       object encoding
    dumps_json / loads_json     JSON text
    dumps_xml / loads_xml       XML text (ElementTree)
    dumps_binary / loads_binary pickle of the state

`save(obj, path)` / `load(path)` pick the encoding from the file extension
(``.json``, ``.xml``, anything else binary).

Decision trees are written as a node arena: a list of nodes referencing
each other by index, so a sub-tree shared by several parents is written once
and is still shared after loading. Floats are written with `repr`, which
round-trips every float64 exactly.
"""

from __future__ import annotations

import json
import logging
import os
import pickle
import xml.etree.ElementTree as ET
from typing import Any, Callable, Dict, List, Union

import jax.numpy as jnp
import numpy as np

from .core.decision_tree import AlgebraicDecisionTree, Choice, DecisionTree, Leaf, Node
from .core.types import DiscreteKey, Key
from .discrete.conditional import DiscreteConditional
from .hybrid.bayes_net import HybridBayesNet
from .hybrid.bayes_tree import HybridBayesTree, HybridBayesTreeClique
from .hybrid.conditional import HybridConditional
from .hybrid.mixture import GaussianMixture
from .linear.conditional import GaussianConditional

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

Persistable = Union[HybridBayesNet, HybridBayesTree]


# --- Decision trees ---

def _tree_to_state(tree: DecisionTree, encode_leaf: Callable[[Any], Any]) -> Dict[str, Any]:
    nodes: List[Dict[str, Any]] = []
    index: Dict[int, int] = {}

    def visit(node: Node) -> int:
        known = index.get(id(node))
        if known is not None:
            return known
        if isinstance(node, Leaf):
            entry: Dict[str, Any] = {"leaf": encode_leaf(node.value)}
        else:
            entry = {"label": int(node.label), "branches": [visit(b) for b in node.branches]}
        index[id(node)] = len(nodes)
        nodes.append(entry)
        return index[id(node)]

    root = visit(tree.root)
    return {"root": root, "nodes": nodes}


def _tree_from_state(state: Dict[str, Any], decode_leaf: Callable[[Any], Any], cls=DecisionTree):
    built: Dict[int, Node] = {}

    def build(i: int) -> Node:
        node = built.get(i)
        if node is not None:
            return node
        entry = state["nodes"][i]
        if "leaf" in entry:
            node = Leaf(decode_leaf(entry["leaf"]))
        else:
            node = Choice(Key(int(entry["label"])), tuple(build(b) for b in entry["branches"]))
        built[i] = node
        return node

    return cls(build(int(state["root"])))


def _dkeys_to_state(keys) -> List[List[int]]:
    return [[int(k), int(c)] for k, c in keys]


def _dkeys_from_state(state) -> List[DiscreteKey]:
    return [DiscreteKey(Key(int(k)), int(c)) for k, c in state]


# --- Conditionals ---

def _matrix(rows, shape) -> jnp.ndarray:
    return jnp.asarray(rows, dtype=float).reshape(shape)


def _gaussian_to_state(c: GaussianConditional) -> Dict[str, Any]:
    return {
        "frontals": [int(k) for k in c.frontals],
        "parents": [int(k) for k in c.parents],
        "dims": list(c.dims),
        "R": np.asarray(c.R, dtype=np.float64).ravel().tolist(),
        "S": np.asarray(c.S, dtype=np.float64).ravel().tolist(),
        "d": np.asarray(c.d, dtype=np.float64).tolist(),
    }


def _gaussian_from_state(state: Dict[str, Any]) -> GaussianConditional:
    d = jnp.asarray(state["d"], dtype=float).reshape(-1)
    n = d.shape[0]
    return GaussianConditional(
        frontals=tuple(Key(int(k)) for k in state["frontals"]),
        parents=tuple(Key(int(k)) for k in state["parents"]),
        dims=tuple(int(v) for v in state["dims"]),
        R=_matrix(state["R"], (n, n)),
        S=_matrix(state["S"], (n, len(state["S"]) // n if n else 0)),
        d=d,
    )


def conditional_to_state(conditional: HybridConditional) -> Dict[str, Any]:
    c = HybridConditional.wrap(conditional)
    if c.is_discrete():
        inner = c.as_discrete()
        return {
            "kind": "discrete",
            "frontals": _dkeys_to_state(inner.frontals),
            "parents": _dkeys_to_state(inner.parents),
            "tree": _tree_to_state(inner.tree, float),
        }
    if c.is_continuous():
        return {"kind": "gaussian", **_gaussian_to_state(c.as_gaussian())}
    mixture = c.as_mixture()
    return {
        "kind": "mixture",
        "frontals": [int(k) for k in mixture.frontals],
        "parents": [int(k) for k in mixture.parents],
        "discrete_parents": _dkeys_to_state(mixture.discrete_parents),
        "tree": _tree_to_state(
            mixture.conditionals, lambda g: None if g is None else _gaussian_to_state(g)
        ),
    }


def conditional_from_state(state: Dict[str, Any]) -> HybridConditional:
    kind = state["kind"]
    if kind == "discrete":
        tree = _tree_from_state(state["tree"], float, AlgebraicDecisionTree)
        return HybridConditional.wrap(
            DiscreteConditional(
                _dkeys_from_state(state["frontals"]), _dkeys_from_state(state["parents"]), tree
            )
        )
    if kind == "gaussian":
        return HybridConditional.wrap(_gaussian_from_state(state))
    if kind == "mixture":
        tree = _tree_from_state(
            state["tree"], lambda s: None if s is None else _gaussian_from_state(s)
        )
        return HybridConditional.wrap(
            GaussianMixture(
                [Key(int(k)) for k in state["frontals"]],
                [Key(int(k)) for k in state["parents"]],
                _dkeys_from_state(state["discrete_parents"]),
                tree,
            )
        )
    raise ValueError(f"unknown conditional kind {kind!r}")


# --- Bayes nets and trees ---

def to_state(obj: Persistable) -> Dict[str, Any]:
    if isinstance(obj, HybridBayesNet):
        return {
            "type": "HybridBayesNet",
            "version": FORMAT_VERSION,
            "conditionals": [conditional_to_state(c) for c in obj],
        }
    if isinstance(obj, HybridBayesTree):

        def clique_state(clique: HybridBayesTreeClique) -> Dict[str, Any]:
            return {
                "conditional": conditional_to_state(clique.conditional),
                "children": [clique_state(child) for child in clique.children],
            }

        return {
            "type": "HybridBayesTree",
            "version": FORMAT_VERSION,
            "roots": [clique_state(r) for r in obj.roots],
        }
    raise TypeError(f"cannot serialize {type(obj).__name__}")


def from_state(state: Dict[str, Any]) -> Persistable:
    version = int(state.get("version", FORMAT_VERSION))
    if version > FORMAT_VERSION:
        raise ValueError(f"unsupported format version {version}")
    kind = state.get("type")
    if kind == "HybridBayesNet":
        return HybridBayesNet(conditional_from_state(c) for c in state["conditionals"])
    if kind == "HybridBayesTree":

        def build(s: Dict[str, Any]) -> HybridBayesTreeClique:
            return HybridBayesTreeClique(
                conditional_from_state(s["conditional"]), [build(c) for c in s["children"]]
            )

        return HybridBayesTree([build(r) for r in state["roots"]])
    raise ValueError(f"unknown object type {kind!r}")


# --- Text and binary ---

def dumps_json(obj: Persistable) -> str:
    return json.dumps(to_state(obj))


def loads_json(text: str) -> Persistable:
    return from_state(json.loads(text))


def _state_to_xml(value: Any, tag: str = "value") -> ET.Element:
    el = ET.Element(tag)
    if value is None:
        el.set("t", "none")
    elif isinstance(value, bool):
        raise TypeError("booleans are not part of the state format")
    elif isinstance(value, int):
        el.set("t", "int")
        el.text = str(value)
    elif isinstance(value, float):
        el.set("t", "float")
        el.text = repr(value)
    elif isinstance(value, str):
        el.set("t", "str")
        el.text = value
    elif isinstance(value, list):
        el.set("t", "list")
        for item in value:
            el.append(_state_to_xml(item, "item"))
    elif isinstance(value, dict):
        el.set("t", "dict")
        for key, item in value.items():
            child = _state_to_xml(item, "entry")
            child.set("key", str(key))
            el.append(child)
    else:
        raise TypeError(f"cannot encode {type(value).__name__} as XML")
    return el


def _state_from_xml(el: ET.Element) -> Any:
    t = el.get("t")
    if t == "none":
        return None
    if t == "int":
        return int(el.text)
    if t == "float":
        return float(el.text)
    if t == "str":
        return el.text or ""
    if t == "list":
        return [_state_from_xml(child) for child in el]
    if t == "dict":
        return {child.get("key"): _state_from_xml(child) for child in el}
    raise ValueError(f"unknown XML value type {t!r}")


def dumps_xml(obj: Persistable) -> str:
    root = _state_to_xml(to_state(obj), "hybrid_fg")
    return ET.tostring(root, encoding="unicode")


def loads_xml(text: str) -> Persistable:
    return from_state(_state_from_xml(ET.fromstring(text)))


def dumps_binary(obj: Persistable) -> bytes:
    return pickle.dumps(to_state(obj), protocol=pickle.HIGHEST_PROTOCOL)


def loads_binary(data: bytes) -> Persistable:
    return from_state(pickle.loads(data))


def save(obj: Persistable, path: Union[str, os.PathLike]) -> None:
    ext = os.path.splitext(os.fspath(path))[1].lower()
    if ext == ".json":
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(dumps_json(obj))
    elif ext == ".xml":
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(dumps_xml(obj))
    else:
        with open(path, "wb") as fh:
            fh.write(dumps_binary(obj))
    logger.debug("saved %s to %s", type(obj).__name__, path)


def load(path: Union[str, os.PathLike]) -> Persistable:
    ext = os.path.splitext(os.fspath(path))[1].lower()
    if ext == ".json":
        with open(path, "r", encoding="utf-8") as fh:
            return loads_json(fh.read())
    if ext == ".xml":
        with open(path, "r", encoding="utf-8") as fh:
            return loads_xml(fh.read())
    with open(path, "rb") as fh:
        return loads_binary(fh.read())
