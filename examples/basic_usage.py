"""
Basic usage example for IndexBridge.
"""

import time

import numpy as np

import indexbridge as ib
from indexbridge.utils import enable_metrics, get_metrics


def main():
    print("=" * 60)
    print("IndexBridge Basic Usage Example")
    print("=" * 60)
    
    dimension = 64
    n_vectors = 20000
    n_queries = 100
    k = 10
    
    np.random.seed(42)
    vectors = np.random.randn(n_vectors, dimension).astype(np.float32)
    queries = vectors[:n_queries] + 0.01 * np.random.randn(n_queries, dimension).astype(np.float32)
    
    enable_metrics()
    
    # 1. Exact baseline
    print("\n1. Building exact baseline...")
    exact = ib.flat_index(dimension).unwrap()
    ib.add(exact, vectors).unwrap()
    truth = ib.search(exact, queries, k=k).unwrap()
    print(f"   {ib.describe(exact).unwrap()}")
    
    # 2. IVF index with an internal quantizer
    print("\n2. Training IVF index...")
    ivf = ib.create_index("ivf_flat", dimension, nlist=128).unwrap()
    start = time.time()
    ib.train(ivf, vectors[:8000]).unwrap()
    print(f"   Training time: {time.time() - start:.2f}s")
    ib.add(ivf, vectors).unwrap()
    
    # 3. Recall against the baseline for a few nprobe values
    print("\n3. Recall@10 by nprobe:")
    for nprobe in (1, 4, 16, 64):
        ib.ivf_set_nprobe(ivf, nprobe).unwrap()
        result = ib.search(ivf, queries, k=k).unwrap()
        hits = sum(
            len(set(truth.labels[i]) & set(result.labels[i])) for i in range(n_queries)
        )
        print(f"   nprobe={nprobe:>3}: {hits / (n_queries * k):.3f}")
    
    # 4. Failures come back as results, not exceptions
    print("\n4. Error handling:")
    bad = ib.search(ivf, np.zeros((1, dimension + 1), dtype=np.float32), k=k)
    print(f"   Wrong dimension -> status={bad.status}, kind={bad.error.value}")
    print(f"   Message: {bad.message}")
    
    # 5. Metrics
    print("\n5. Operation metrics:")
    for name, stats in get_metrics().to_dict()["operations"].items():
        print(f"   {name:>8}: {stats['count']} calls, {stats['total_seconds']:.3f}s")
    
    ib.free(ivf).unwrap()
    ib.free(exact).unwrap()
    
    print("\n" + "=" * 60)
    print("Example completed!")
    print("=" * 60)


if __name__ == "__main__":
    main()
