"""
Shared enums for handles, metrics and variant capabilities.

The variant of a handle is fixed when it is built. What a handle can do
beyond the common operations is read from ``VARIANT_CAPABILITIES``
instead of probing the engine object at call time.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Union

import faiss


class Metric(str, Enum):
    """Distance metrics supported by the float index family."""
    L2 = "l2"
    INNER_PRODUCT = "inner_product"

    def to_faiss(self) -> int:
        """Engine metric constant."""
        if self is Metric.L2:
            return faiss.METRIC_L2
        return faiss.METRIC_INNER_PRODUCT

    @classmethod
    def from_faiss(cls, value: int) -> "Metric":
        """Map an engine metric constant back to ``Metric``."""
        if value == faiss.METRIC_L2:
            return cls.L2
        if value == faiss.METRIC_INNER_PRODUCT:
            return cls.INNER_PRODUCT
        raise ValueError(f"Unsupported engine metric: {value}")

    @classmethod
    def parse(cls, value: Union[str, "Metric"]) -> "Metric":
        """Accept a ``Metric`` or one of its common spellings."""
        if isinstance(value, Metric):
            return value
        key = str(value).lower()
        if key in _METRIC_ALIASES:
            return _METRIC_ALIASES[key]
        raise ValueError(
            f"Unknown metric: {value}. Available: {', '.join(sorted(_METRIC_ALIASES))}"
        )


_METRIC_ALIASES = {
    "l2": Metric.L2,
    "euclidean": Metric.L2,
    "ip": Metric.INNER_PRODUCT,
    "inner_product": Metric.INNER_PRODUCT,
    "dot": Metric.INNER_PRODUCT,
}


class Variant(str, Enum):
    """Index variant tags."""
    FLAT = "flat"
    IVF = "ivf"
    HNSW = "hnsw"
    PQ = "pq"
    PQ_FASTSCAN = "pq_fastscan"
    SQ = "sq"
    LSH = "lsh"
    REFINE = "refine"
    PRE_TRANSFORM = "pre_transform"
    IDMAP = "idmap"
    SHARDS = "shards"
    BINARY_FLAT = "binary_flat"
    BINARY_IVF = "binary_ivf"
    BINARY_HASH = "binary_hash"
    GENERIC = "generic"

    @property
    def is_binary(self) -> bool:
        return self in _BINARY_VARIANTS


_BINARY_VARIANTS = frozenset(
    {Variant.BINARY_FLAT, Variant.BINARY_IVF, Variant.BINARY_HASH}
)


class Capability(str, Enum):
    """Variant-specific operations gated by capability dispatch."""
    NPROBE = "nprobe"
    BINARY_NPROBE = "binary_nprobe"
    ASSIGN = "assign"
    GRAPH_BREADTH = "graph_breadth"
    K_FACTOR = "k_factor"
    REMOVE_IDS = "remove_ids"
    ADD_SHARD = "add_shard"
    BLOCK_SIZE = "block_size"


VARIANT_CAPABILITIES: Dict[Variant, FrozenSet[Capability]] = {
    Variant.FLAT: frozenset(),
    Variant.IVF: frozenset({Capability.NPROBE, Capability.ASSIGN}),
    Variant.HNSW: frozenset({Capability.GRAPH_BREADTH}),
    Variant.PQ: frozenset(),
    Variant.PQ_FASTSCAN: frozenset({Capability.BLOCK_SIZE}),
    Variant.SQ: frozenset(),
    Variant.LSH: frozenset(),
    Variant.REFINE: frozenset({Capability.K_FACTOR}),
    Variant.PRE_TRANSFORM: frozenset(),
    Variant.IDMAP: frozenset({Capability.REMOVE_IDS}),
    Variant.SHARDS: frozenset({Capability.ADD_SHARD}),
    Variant.BINARY_FLAT: frozenset(),
    Variant.BINARY_IVF: frozenset({Capability.BINARY_NPROBE, Capability.ASSIGN}),
    Variant.BINARY_HASH: frozenset(),
    Variant.GENERIC: frozenset(),
}


class TransformKind(str, Enum):
    """Vector transform variants."""
    PCA = "pca"
    OPQ = "opq"
    RANDOM_ROTATION = "random_rotation"


class ScalarQuantizerKind(str, Enum):
    """Scalar quantizer code layouts."""
    QT_8BIT = "8bit"
    QT_4BIT = "4bit"
    QT_8BIT_UNIFORM = "8bit_uniform"
    QT_4BIT_UNIFORM = "4bit_uniform"
    QT_FP16 = "fp16"
    QT_8BIT_DIRECT = "8bit_direct"
    QT_6BIT = "6bit"

    def to_faiss(self) -> int:
        """Engine quantizer-type constant."""
        return getattr(faiss.ScalarQuantizer, _SQ_NAMES[self])

    @classmethod
    def from_faiss(cls, qtype: int) -> "ScalarQuantizerKind":
        """Map an engine quantizer-type constant back to a kind."""
        for kind, name in _SQ_NAMES.items():
            if getattr(faiss.ScalarQuantizer, name, None) == qtype:
                return kind
        raise ValueError(f"Unsupported scalar quantizer type: {qtype}")

    @classmethod
    def parse(cls, value: Union[str, "ScalarQuantizerKind"]) -> "ScalarQuantizerKind":
        if isinstance(value, ScalarQuantizerKind):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(
                f"Unknown scalar quantizer kind: {value}. "
                f"Available: {', '.join(k.value for k in cls)}"
            ) from None


_SQ_NAMES = {
    ScalarQuantizerKind.QT_8BIT: "QT_8bit",
    ScalarQuantizerKind.QT_4BIT: "QT_4bit",
    ScalarQuantizerKind.QT_8BIT_UNIFORM: "QT_8bit_uniform",
    ScalarQuantizerKind.QT_4BIT_UNIFORM: "QT_4bit_uniform",
    ScalarQuantizerKind.QT_FP16: "QT_fp16",
    ScalarQuantizerKind.QT_8BIT_DIRECT: "QT_8bit_direct",
    ScalarQuantizerKind.QT_6BIT: "QT_6bit",
}
