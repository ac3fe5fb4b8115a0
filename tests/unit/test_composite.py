"""
Unit tests for composite indexes and their ownership rules.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal

from indexbridge import (
    ErrorKind,
    Variant,
    Owned,
    Borrowed,
    flat_index,
    hnsw_flat_index,
    ivf_flat_index,
    pq_index,
    binary_flat_index,
    refine_index,
    pre_transform_index,
    id_map_index,
    shard_set,
    add_shard,
    shard_count,
    remove_ids,
    add,
    add_with_ids,
    train,
    search,
    reconstruct,
    ntotal,
    is_trained,
    describe,
    free,
    refine_set_k_factor,
    refine_get_k_factor,
    ivf_set_nprobe,
    pca_matrix,
    random_rotation_matrix,
)


class TestRefine:
    """Refine index tests."""
    
    @pytest.fixture
    def children(self, dimension):
        base = pq_index(dimension, M=4, nbits=6).unwrap()
        exact = flat_index(dimension).unwrap()
        return base, exact
    
    def test_create(self, children):
        base, exact = children
        
        index = refine_index(Borrowed(base), Borrowed(exact)).unwrap()
        
        assert index.variant is Variant.REFINE
        assert refine_get_k_factor(index).value == pytest.approx(1.0)
        assert describe(index).value.tag == "IndexRefine"
    
    def test_internal_refine(self, dimension):
        base = hnsw_flat_index(dimension, M=8).unwrap()
        
        index = refine_index(base).unwrap()
        
        assert index.variant is Variant.REFINE
        assert describe(index).value.tag == "IndexRefine"
    
    def test_k_factor(self, children):
        index = refine_index(*children).unwrap()
        
        refine_set_k_factor(index, 4).unwrap()
        
        assert refine_get_k_factor(index).value == pytest.approx(4.0)
        assert refine_set_k_factor(index, 0.5).error == ErrorKind.INVALID_ARGUMENT
        assert refine_get_k_factor(index).value == pytest.approx(4.0)
    
    def test_search_reranks_exactly(self, children, training_vectors, random_vectors):
        index = refine_index(*children).unwrap()
        train(index, training_vectors).unwrap()
        add(index, random_vectors).unwrap()
        refine_set_k_factor(index, 8)
        
        result = search(index, random_vectors[:5], k=1).unwrap()
        
        assert list(result.labels[:, 0]) == [0, 1, 2, 3, 4]
        assert_array_almost_equal(result.distances[:, 0], np.zeros(5), decimal=3)
    
    def test_dimension_mismatch(self, dimension):
        base = flat_index(dimension).unwrap()
        exact = flat_index(dimension * 2).unwrap()
        
        assert refine_index(base, exact).error == ErrorKind.INVALID_ARGUMENT
    
    def test_owned_children_rejected(self, children):
        base, exact = children
        
        assert refine_index(Owned(base), exact).error == ErrorKind.INVALID_ARGUMENT
    
    def test_children_borrowed(self, children):
        base, exact = children
        index = refine_index(base, exact).unwrap()
        
        free(index).unwrap()
        
        assert not base.is_freed
        assert not exact.is_freed
        assert free(base).ok and free(exact).ok
    
    def test_nprobe_mismatch(self, children):
        index = refine_index(*children).unwrap()
        
        assert ivf_set_nprobe(index, 2).error == ErrorKind.CAPABILITY_MISMATCH


class TestPreTransform:
    """PreTransform ownership and dimension tests."""
    
    def test_takes_ownership_of_transform(self, dimension):
        rotation = random_rotation_matrix(dimension, dimension).unwrap()
        base = flat_index(dimension).unwrap()
        
        index = pre_transform_index(Owned(rotation), Borrowed(base)).unwrap()
        
        assert index.variant is Variant.PRE_TRANSFORM
        assert rotation.owner is index
        assert free(rotation).error == ErrorKind.INVALID_ARGUMENT
        
        free(index).unwrap()
        
        assert rotation.is_freed
        assert not base.is_freed
    
    def test_dimension_mismatch_leaves_state(self, dimension):
        pca = pca_matrix(dimension, 8).unwrap()
        base = flat_index(16).unwrap()
        
        result = pre_transform_index(pca, base)
        
        assert result.error == ErrorKind.INVALID_ARGUMENT
        assert pca.owner is None
        assert free(pca).ok
    
    def test_borrowed_transform_rejected(self, dimension):
        rotation = random_rotation_matrix(dimension, dimension).unwrap()
        base = flat_index(dimension).unwrap()
        
        result = pre_transform_index(Borrowed(rotation), base)
        
        assert result.error == ErrorKind.INVALID_ARGUMENT
        assert rotation.owner is None
    
    def test_transform_cannot_be_owned_twice(self, dimension):
        rotation = random_rotation_matrix(dimension, dimension).unwrap()
        pre_transform_index(rotation, flat_index(dimension).unwrap()).unwrap()
        
        result = pre_transform_index(rotation, flat_index(dimension).unwrap())
        
        assert result.error == ErrorKind.INVALID_ARGUMENT
    
    def test_pca_train_add_search(self, dimension, training_vectors, random_vectors):
        pca = pca_matrix(dimension, 16).unwrap()
        base = flat_index(16).unwrap()
        index = pre_transform_index(pca, base).unwrap()
        
        assert is_trained(index).value is False
        train(index, training_vectors).unwrap()
        add(index, random_vectors).unwrap()
        
        result = search(index, random_vectors[:3], k=1).unwrap()
        
        assert list(result.labels[:, 0]) == [0, 1, 2]
        assert ntotal(index).value == len(random_vectors)


class TestIDMap:
    """IDMap tests."""
    
    @pytest.fixture
    def id_map(self, dimension):
        base = flat_index(dimension).unwrap()
        return id_map_index(Borrowed(base)).unwrap()
    
    def test_add_with_ids_and_search(self, id_map, random_vectors):
        ids = np.arange(len(random_vectors)) * 10 + 7
        add_with_ids(id_map, random_vectors, ids).unwrap()
        
        result = search(id_map, random_vectors[:3], k=1).unwrap()
        
        assert list(result.labels[:, 0]) == [7, 17, 27]
    
    def test_plain_add_rejected(self, id_map, random_vectors):
        assert add(id_map, random_vectors).error == ErrorKind.INTERNAL_FAULT
        assert ntotal(id_map).value == 0
    
    def test_present_ids_rejected(self, id_map, random_vectors):
        add_with_ids(id_map, random_vectors[:5], [1, 2, 3, 4, 5]).unwrap()
        
        result = add_with_ids(id_map, random_vectors[5:7], [5, 6])
        
        assert result.error == ErrorKind.INVALID_ARGUMENT
        assert ntotal(id_map).value == 5
    
    def test_id_count_mismatch(self, id_map, random_vectors):
        result = add_with_ids(id_map, random_vectors[:5], [1, 2, 3])
        
        assert result.error == ErrorKind.INVALID_ARGUMENT
    
    def test_reconstruct_by_id(self, id_map, random_vectors):
        add_with_ids(id_map, random_vectors[:5], [100, 200, 300, 400, 500])
        
        assert_array_almost_equal(reconstruct(id_map, 300).unwrap(), random_vectors[2])
    
    def test_remove_ids_counts(self, id_map, random_vectors):
        """Removing S returns |S ∩ present| and shrinks ntotal by the same."""
        ids = np.arange(50, 60)
        add_with_ids(id_map, random_vectors[:10], ids).unwrap()
        
        removed = remove_ids(id_map, [50, 52, 54, 999, -3]).unwrap()
        
        assert removed == 3
        assert ntotal(id_map).value == 7
        result = search(id_map, random_vectors[:10], k=1).unwrap()
        assert not {50, 52, 54} & set(result.labels[:, 0].tolist())
    
    def test_remove_nothing(self, id_map, random_vectors):
        add_with_ids(id_map, random_vectors[:3], [1, 2, 3])
        
        assert remove_ids(id_map, []).value == 0
        assert remove_ids(id_map, [9]).value == 0
        assert ntotal(id_map).value == 3
    
    def test_remove_ids_on_flat(self, flat):
        assert remove_ids(flat, [1]).error == ErrorKind.CAPABILITY_MISMATCH
    
    def test_base_borrowed(self, dimension):
        base = flat_index(dimension).unwrap()
        index = id_map_index(base).unwrap()
        
        free(index)
        
        assert not base.is_freed
    
    def test_binary_base_rejected(self):
        base = binary_flat_index(64).unwrap()
        
        assert id_map_index(base).error == ErrorKind.INVALID_ARGUMENT


class TestShardSet:
    """ShardSet tests."""
    
    def test_ntotal_is_sum_of_shards(self, random_vectors):
        """Shards filled independently add up in the set's ntotal."""
        shards = shard_set(8).unwrap()
        children = [flat_index(8).unwrap() for _ in range(3)]
        for child in children:
            add_shard(shards, Owned(child)).unwrap()
        
        np.random.seed(0)
        for i, child in enumerate(children):
            add(child, np.random.randn(5 * (i + 1), 8).astype(np.float32)).unwrap()
            expected = sum(ntotal(c).value for c in children)
            assert ntotal(shards).value == expected
        
        assert ntotal(shards).value == 5 + 10 + 15
        assert shard_count(shards) == 3
        assert describe(shards).value.params["shards"] == 3
    
    def test_search_across_shards(self):
        shards = shard_set(8, successive_ids=True).unwrap()
        a = flat_index(8).unwrap()
        b = flat_index(8).unwrap()
        add_shard(shards, a)
        add_shard(shards, b)
        np.random.seed(1)
        va = np.random.randn(10, 8).astype(np.float32)
        vb = np.random.randn(10, 8).astype(np.float32)
        add(a, va)
        add(b, vb)
        
        result = search(shards, vb[:2], k=1).unwrap()
        
        assert list(result.labels[:, 0]) == [10, 11]
    
    def test_shards_owned(self):
        shards = shard_set(8).unwrap()
        child = flat_index(8).unwrap()
        add_shard(shards, child).unwrap()
        
        assert child.owner is shards
        assert free(child).error == ErrorKind.INVALID_ARGUMENT
        
        free(shards).unwrap()
        assert child.is_freed
    
    def test_borrowed_shard_rejected(self):
        shards = shard_set(8).unwrap()
        
        result = add_shard(shards, Borrowed(flat_index(8).unwrap()))
        
        assert result.error == ErrorKind.INVALID_ARGUMENT
        assert shard_count(shards) == 0
    
    def test_shard_dimension_mismatch(self):
        shards = shard_set(8).unwrap()
        
        assert add_shard(shards, flat_index(16).unwrap()).error == ErrorKind.INVALID_ARGUMENT
    
    def test_shard_metric_mismatch(self):
        shards = shard_set(8, metric="l2").unwrap()
        
        result = add_shard(shards, flat_index(8, metric="ip").unwrap())
        
        assert result.error == ErrorKind.INVALID_ARGUMENT
    
    def test_add_shard_on_flat(self, flat, dimension):
        result = add_shard(flat, flat_index(dimension).unwrap())
        
        assert result.error == ErrorKind.CAPABILITY_MISMATCH
    
    def test_shard_cannot_join_two_sets(self):
        first = shard_set(8).unwrap()
        second = shard_set(8).unwrap()
        child = flat_index(8).unwrap()
        add_shard(first, child).unwrap()
        
        assert add_shard(second, child).error == ErrorKind.INVALID_ARGUMENT
        assert shard_count(second) == 0
