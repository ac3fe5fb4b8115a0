"""
Composite indexes, persistence and device placement with IndexBridge.
"""

import os
import tempfile

import numpy as np

import indexbridge as ib
from indexbridge.device import get_num_gpus, resources_new, index_cpu_to_gpu, index_gpu_to_cpu


def main():
    print("=" * 60)
    print("Composite Index Example")
    print("=" * 60)
    
    d_in, d_out = 128, 32
    np.random.seed(0)
    training = np.random.randn(5000, d_in).astype(np.float32)
    vectors = np.random.randn(10000, d_in).astype(np.float32)
    ids = np.arange(1_000_000, 1_000_000 + len(vectors))
    
    # 1. PCA down to 32 dimensions
    print("\n1. Training PCA...")
    pca = ib.pca_matrix(d_in, d_out).unwrap()
    ib.transform_train(pca, training).unwrap()
    
    # 2. IVF-PQ with exact re-ranking, wrapped in an id map
    print("2. Building IVF-PQ + refine + id map...")
    coarse = ib.ivf_pq_index(None, d_out, nlist=64, M=8).unwrap()
    refine = ib.refine_index(ib.Borrowed(coarse)).unwrap()
    ib.train(refine, ib.transform_apply(pca, training).unwrap()).unwrap()
    ib.refine_set_k_factor(refine, 8).unwrap()
    
    mapped = ib.id_map_index(ib.Borrowed(refine)).unwrap()
    
    # The pipeline owns the PCA; it is released together with the pipeline.
    pipeline = ib.pre_transform_index(ib.Owned(pca), ib.Borrowed(mapped)).unwrap()
    
    ib.add_with_ids(pipeline, vectors, ids).unwrap()
    result = ib.search(pipeline, vectors[:3], k=3).unwrap()
    print(f"   Top labels: {result.labels[:, 0].tolist()}")
    
    removed = ib.remove_ids(mapped, ids[:100]).unwrap()
    print(f"   Removed {removed} ids, {ib.ntotal(mapped).value} remain")
    
    # 3. Persistence
    print("\n3. Writing and reading back...")
    path = os.path.join(tempfile.mkdtemp(), "pipeline.index")
    ib.write_index(pipeline, path).unwrap()
    loaded = ib.read_index(path).unwrap()
    print(f"   {loaded.variant_tag}: d={loaded.d}, trained={loaded.is_trained}")
    ib.free(loaded.handle).unwrap()
    
    # 4. Optional device placement
    print("\n4. Device placement:")
    n_gpus = get_num_gpus()
    if not n_gpus or n_gpus.value == 0:
        print(f"   No device backend available ({n_gpus.message or 'no devices'})")
    else:
        res = resources_new().unwrap()
        exact = ib.flat_index(d_in).unwrap()
        ib.add(exact, vectors).unwrap()
        on_device = index_cpu_to_gpu(res, 0, exact).unwrap()
        back = index_gpu_to_cpu(on_device).unwrap()
        print(f"   Round trip kept {ib.ntotal(back).value} vectors")
        for handle in (back, on_device, exact, res):
            ib.free(handle).unwrap()
    
    for handle in (pipeline, mapped, refine, coarse):
        ib.free(handle).unwrap()
    
    print("\n" + "=" * 60)
    print("Example completed!")
    print("=" * 60)


if __name__ == "__main__":
    main()
