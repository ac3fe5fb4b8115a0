"""
Unit tests for the flat index and the common operation facade.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal, assert_array_equal

from indexbridge import (
    ErrorKind,
    Metric,
    Variant,
    flat_index,
    create_index,
    add,
    add_with_ids,
    train,
    reset,
    search,
    range_search,
    free_range_result,
    assign,
    reconstruct,
    reconstruct_n,
    reconstruct_batch,
    ntotal,
    dimension as index_dimension,
    is_trained,
    metric,
    describe,
    free,
)


class TestFlatBasics:
    """Basic flat index tests."""
    
    def test_create(self, dimension):
        handle = flat_index(dimension).unwrap()
        
        assert handle.variant is Variant.FLAT
        assert index_dimension(handle).value == dimension
        assert ntotal(handle).value == 0
        assert is_trained(handle).value is True
        assert metric(handle).value is Metric.L2
    
    def test_create_inner_product(self, dimension):
        handle = flat_index(dimension, metric="ip").unwrap()
        
        assert metric(handle).value is Metric.INNER_PRODUCT
    
    @pytest.mark.parametrize("d", [0, -1, 2.5, "8", None])
    def test_invalid_dimension(self, d):
        result = flat_index(d)
        
        assert result.error == ErrorKind.INVALID_ARGUMENT
        assert result.value is None
    
    def test_invalid_metric(self, dimension):
        assert flat_index(dimension, metric="cosine").error == ErrorKind.INVALID_ARGUMENT
    
    def test_add(self, flat, random_vectors):
        result = add(flat, random_vectors)
        
        assert result.ok
        assert ntotal(flat).value == len(random_vectors)
    
    def test_add_flat_buffer(self, flat, random_vectors):
        """Test a 1-D buffer is split into rows of the index dimension."""
        add(flat, random_vectors[:3].ravel()).unwrap()
        
        assert ntotal(flat).value == 3
    
    def test_add_zero_rows(self, flat, dimension):
        result = add(flat, np.empty((0, dimension), dtype=np.float32))
        
        assert result.ok
        assert ntotal(flat).value == 0
    
    def test_add_dimension_mismatch(self, flat, dimension):
        result = add(flat, np.zeros((2, dimension + 1), dtype=np.float32))
        
        assert result.error == ErrorKind.INVALID_ARGUMENT
        assert ntotal(flat).value == 0
    
    def test_add_ragged_buffer(self, flat, dimension):
        result = add(flat, np.zeros(dimension + 3, dtype=np.float32))
        
        assert result.error == ErrorKind.INVALID_ARGUMENT
    
    def test_add_float64_converted(self, flat, dimension):
        add(flat, np.random.randn(5, dimension)).unwrap()
        
        assert ntotal(flat).value == 5
    
    def test_add_with_ids_rejected_by_engine(self, flat, random_vectors):
        """Test the engine's refusal surfaces as an internal fault."""
        ids = np.arange(len(random_vectors))
        
        result = add_with_ids(flat, random_vectors, ids)
        
        assert result.error == ErrorKind.INTERNAL_FAULT
        assert result.message
        assert ntotal(flat).value == 0
    
    def test_train_is_noop(self, flat, random_vectors):
        assert train(flat, random_vectors).ok
        assert is_trained(flat).value is True
        assert ntotal(flat).value == 0
    
    def test_reset(self, flat, random_vectors):
        add(flat, random_vectors)
        
        assert reset(flat).ok
        assert ntotal(flat).value == 0
        assert is_trained(flat).value is True
    
    def test_assign_not_supported(self, flat, random_vectors):
        result = assign(flat, random_vectors)
        
        assert result.error == ErrorKind.CAPABILITY_MISMATCH


class TestFlatSearch:
    """Flat search tests."""
    
    def test_exact_match(self):
        """Searching for stored vector #2 returns label 2 at distance 0."""
        handle = flat_index(4, metric="l2").unwrap()
        vectors = np.arange(40, dtype=np.float32).reshape(10, 4)
        add(handle, vectors).unwrap()
        
        result = search(handle, vectors[2], k=3).unwrap()
        
        assert result.labels.shape == (1, 3)
        assert result.labels[0, 0] == 2
        assert result.distances[0, 0] == pytest.approx(0.0)
        free(handle)
    
    def test_l2_ascending(self, flat, random_vectors):
        add(flat, random_vectors)
        
        distances, labels = search(flat, random_vectors[:5], k=10).unwrap()
        
        assert np.all(np.diff(distances, axis=1) >= 0)
        assert_array_equal(labels[:, 0], np.arange(5))
    
    def test_inner_product_descending(self, dimension, random_vectors):
        handle = flat_index(dimension, metric="inner_product").unwrap()
        add(handle, random_vectors)
        
        distances, _ = search(handle, random_vectors[:5], k=10).unwrap()
        
        assert np.all(np.diff(distances, axis=1) <= 0)
        free(handle)
    
    def test_k_larger_than_ntotal(self, flat, random_vectors):
        add(flat, random_vectors[:3])
        
        result = search(flat, random_vectors[:1], k=5).unwrap()
        
        assert result.k == 5
        assert_array_equal(result.labels[0, 3:], [-1, -1])
    
    def test_empty_queries(self, flat, dimension, random_vectors):
        add(flat, random_vectors)
        
        result = search(flat, np.empty((0, dimension), dtype=np.float32), k=4).unwrap()
        
        assert result.n == 0
        assert result.labels.shape == (0, 4)
    
    @pytest.mark.parametrize("k", [0, -1, 1.5])
    def test_invalid_k(self, flat, random_vectors, k):
        add(flat, random_vectors)
        
        assert search(flat, random_vectors[:1], k=k).error == ErrorKind.INVALID_ARGUMENT
    
    def test_range_search(self, flat, random_vectors):
        add(flat, random_vectors)
        
        result = range_search(flat, random_vectors[:3], 1e-3).unwrap()
        
        assert result.nq == 3
        assert len(result.lims) == 4
        for i in range(3):
            labels, distances = result.query_results(i)
            assert i in labels
        
        assert free_range_result(result).ok
        assert result.released
    
    def test_range_search_empty_queries(self, flat, dimension, random_vectors):
        add(flat, random_vectors)
        
        result = range_search(flat, np.empty((0, dimension), dtype=np.float32), 1.0).unwrap()
        
        assert result.nq == 0
        assert result.labels.dtype == np.int64
        assert result.distances.dtype == np.float32
        assert len(result.labels) == 0
    
    def test_range_result_double_free(self, flat, random_vectors):
        add(flat, random_vectors)
        result = range_search(flat, random_vectors[:1], 1.0).unwrap()
        free_range_result(result)
        
        assert free_range_result(result).error == ErrorKind.INVALID_ARGUMENT


class TestReconstruct:
    """Reconstruction tests."""
    
    def test_reconstruct(self, flat, random_vectors):
        add(flat, random_vectors)
        
        vector = reconstruct(flat, 7).unwrap()
        
        assert_array_almost_equal(vector, random_vectors[7])
    
    def test_reconstruct_invalid_key(self, flat, random_vectors):
        add(flat, random_vectors)
        
        assert reconstruct(flat, "7").error == ErrorKind.INVALID_ARGUMENT
        assert reconstruct(flat, 10_000).error == ErrorKind.INVALID_ARGUMENT
        assert reconstruct(flat, -1).error == ErrorKind.INVALID_ARGUMENT
    
    def test_reconstruct_n(self, flat, random_vectors):
        add(flat, random_vectors)
        
        vectors = reconstruct_n(flat, 10, 5).unwrap()
        
        assert_array_almost_equal(vectors, random_vectors[10:15])
    
    def test_reconstruct_n_out_of_range(self, flat, random_vectors):
        add(flat, random_vectors[:10])
        
        assert reconstruct_n(flat, 8, 5).error == ErrorKind.INVALID_ARGUMENT
        assert reconstruct_n(flat, -1, 2).error == ErrorKind.INVALID_ARGUMENT
    
    def test_reconstruct_batch(self, flat, random_vectors):
        add(flat, random_vectors)
        
        vectors = reconstruct_batch(flat, [3, 1, 3]).unwrap()
        
        assert vectors.shape == (3, random_vectors.shape[1])
        assert_array_almost_equal(vectors[0], random_vectors[3])
        assert_array_almost_equal(vectors[1], random_vectors[1])


class TestDescribe:
    """describe() tests."""
    
    def test_describe_flat(self, flat, random_vectors):
        add(flat, random_vectors)
        
        info = describe(flat).unwrap()
        
        assert info.variant == "flat"
        assert info.tag == "IndexFlat"
        assert info.ntotal == len(random_vectors)
        assert info.metric == "l2"
        assert info.device is None
        assert info.to_dict()["dimension"] == random_vectors.shape[1]


class TestCreateIndex:
    """create_index() factory tests."""
    
    @pytest.mark.parametrize(
        "kind,params,variant",
        [
            ("flat", {}, Variant.FLAT),
            ("ivf", {"nlist": 4}, Variant.IVF),
            ("ivf_pq", {"nlist": 4, "M": 4}, Variant.IVF),
            ("ivf_sq", {"nlist": 4}, Variant.IVF),
            ("hnsw", {"M": 8}, Variant.HNSW),
            ("pq", {"M": 4}, Variant.PQ),
            ("pq_fastscan", {"M": 8}, Variant.PQ_FASTSCAN),
            ("ivf_pq_fastscan", {"nlist": 4, "M": 8}, Variant.IVF),
            ("sq", {"qtype": "fp16"}, Variant.SQ),
            ("lsh", {"nbits": 16}, Variant.LSH),
        ],
    )
    def test_kinds(self, kind, params, variant):
        handle = create_index(kind, 32, **params).unwrap()
        
        assert handle.variant is variant
        free(handle)
    
    def test_binary_kind(self):
        handle = create_index("binary_flat", 64).unwrap()
        
        assert handle.variant is Variant.BINARY_FLAT
    
    def test_unknown_kind(self):
        assert create_index("annoy", 32).error == ErrorKind.INVALID_ARGUMENT
    
    def test_inner_error_kind_preserved(self):
        result = create_index("pq", 30, M=4)
        
        assert result.error == ErrorKind.INVALID_ARGUMENT
    
    def test_unknown_parameter(self):
        """Test a stray keyword is rejected as caller input."""
        result = create_index("flat", 32, nlist=4)
        
        assert result.error == ErrorKind.INVALID_ARGUMENT
        assert "nlist" in result.message
    
    def test_missing_parameter(self):
        result = create_index("ivf_pq", 32, nlist=4)
        
        assert result.error == ErrorKind.INVALID_ARGUMENT
    
    def test_metric_ignored_by_binary_kinds(self):
        handle = create_index("binary_hash", 64, metric="l2", nbits=8).unwrap()
        
        assert handle.variant is Variant.BINARY_HASH
