"""
Constructors for the binary index family.

Binary indexes store packed bit vectors: a dimension of ``d`` bits means
rows of ``d // 8`` uint8 codes, compared under Hamming distance.
"""

from __future__ import annotations

from typing import Union

import faiss

from ..config import get_settings
from ..core.exceptions import ValidationError
from ..core.handle import Borrowed, IndexHandle, probe_variant, take_borrowed
from ..core.result import fault_boundary
from ..core.types import Variant
from ..utils.logging import get_logger
from ..utils.validation import validate_binary_dimension, validate_positive


logger = get_logger(__name__)


@fault_boundary
def binary_flat_index(d: int) -> IndexHandle:
    """Exact Hamming index over ``d``-bit codes. Always trained."""
    d = validate_binary_dimension(d)
    handle = IndexHandle(faiss.IndexBinaryFlat(d), Variant.BINARY_FLAT)
    logger.debug(f"Created {handle!r}")
    return handle


@fault_boundary
def binary_ivf_index(
    quantizer: Union[IndexHandle, Borrowed, None],
    d: int,
    nlist: int,
) -> IndexHandle:
    """
    Inverted-file index over binary codes. Requires training.
    
    Args:
        quantizer: Binary coarse quantizer (borrowed), or None for an
            internal binary flat quantizer
        d: Code length in bits
        nlist: Number of partitions
    """
    d = validate_binary_dimension(d)
    nlist = validate_positive(nlist, "nlist")
    
    coarse = None
    if quantizer is not None:
        coarse = take_borrowed(quantizer, "quantizer", IndexHandle)
        if not coarse.is_binary:
            raise ValidationError("Binary IVF index needs a binary quantizer")
        if coarse.raw.d != d:
            raise ValidationError(
                f"Quantizer dimension {coarse.raw.d} != index dimension {d}"
            )
    
    q_raw = coarse.raw if coarse is not None else faiss.IndexBinaryFlat(d)
    raw = faiss.IndexBinaryIVF(q_raw, d, nlist)
    raw.nprobe = get_settings().index.nprobe
    
    handle = IndexHandle(raw, Variant.BINARY_IVF, params={"nlist": nlist})
    if coarse is not None:
        handle.reference(coarse)
    else:
        handle.keep_alive(q_raw)
    logger.debug(f"Created {handle!r}")
    return handle


@fault_boundary
def binary_hash_index(d: int, nbits: int) -> IndexHandle:
    """
    Multi-bit hash index over binary codes. Always trained.
    
    Args:
        d: Code length in bits
        nbits: Number of bits used as the hash key
    """
    d = validate_binary_dimension(d)
    nbits = validate_positive(nbits, "nbits")
    if nbits > d:
        raise ValidationError(f"Hash bits {nbits} exceed code length {d}")
    
    handle = IndexHandle(
        faiss.IndexBinaryHash(d, nbits), Variant.BINARY_HASH, params={"nbits": nbits}
    )
    logger.debug(f"Created {handle!r}")
    return handle


@fault_boundary
def binary_index_factory(d: int, description: str) -> IndexHandle:
    """Build a binary layout from an engine description such as "BIVF16"."""
    d = validate_binary_dimension(d)
    if not isinstance(description, str) or not description.strip():
        raise ValidationError("Index description must be a non-empty string")
    
    raw = faiss.index_binary_factory(d, description.strip())
    variant, tag = probe_variant(raw, binary=True)
    if variant is Variant.GENERIC:
        raise ValidationError(
            f"Description '{description}' does not build a supported binary index"
        )
    
    return IndexHandle(raw, variant, params={"description": description.strip(), "tag": tag})
