"""
Example usage of the ndsom package
"""

import os

import numpy as np
from ndsom import (
    Kohonen,
    TrainerConfig,
    DifferenceOperator,
    ReductionOperator,
    VisitationLogCallback,
)


def run_examples():
    """Run examples of ndsom usage"""

    rng = np.random.RandomState(42)

    # Example 1: Palette reduction of a synthetic 64x64 RGB image
    print("Example 1: 16-color palette on a 1-D chain")
    image = rng.randint(0, 256, size=(64, 64, 3)).astype(np.uint8)
    pixels = image.reshape(-1, 3).astype(np.float32)

    config = TrainerConfig(num_iterations=10, weight_bounds=(0, 255), seed=42)
    som = Kohonen(3, 1, [16], config=config)
    som.train(pixels[rng.choice(len(pixels), 512, replace=False)], randomize=True)

    som.get_points(image)  # in place, values rounded to uint8
    print(f"Distinct colors after quantization: {len(np.unique(image.reshape(-1, 3), axis=0))}")

    # Example 2: A 2-D grid and a separate output buffer
    print("\nExample 2: 8x8 grid, mapping into a new array")
    data = rng.random_sample((200, 3)).astype(np.float32)
    som = Kohonen(3, 2, [8, 8], config=TrainerConfig(num_iterations=20, seed=42))
    som.train(data)
    mapped = som.get_points(data, np.empty_like(data))
    print(f"Quantization error: {som.quantization_error(data):.4f}")
    print(f"Topographic error: {som.topographic_error(data):.4f}")
    print(f"Max change after mapping: {np.abs(mapped - data).max():.4f}")

    # Example 3: Chebyshev-style winner search
    print("\nExample 3: absolute difference with max reduction")
    config = TrainerConfig(
        num_iterations=20,
        difference=DifferenceOperator.ABSOLUTE,
        reduction=ReductionOperator.MAX,
        seed=42,
    )
    som = Kohonen(3, 3, [4, 4, 4], config=config)
    som.train(data)
    print(f"Quantization error: {som.quantization_error(data):.4f}")

    # Example 4: A 4-D network needs its own node distance
    print("\nExample 4: 4-D network with a custom node distance")
    shape = (3, 3, 3, 3)

    def manhattan_4d(idx1, idx2):
        a = np.unravel_index(idx1, shape)
        b = np.unravel_index(idx2, shape)
        return float(sum(abs(x - y) for x, y in zip(a, b)))

    som = Kohonen(3, 4, shape, distance_metric=manhattan_4d, config=TrainerConfig(seed=42))
    log = VisitationLogCallback()
    som.train(data[:20], num_iterations=5, randomize=True, callbacks=[log])
    print(f"First iteration order: {log.visits[0]}")

    # Example 5: Persistence
    print("\nExample 5: Save and load")
    som = Kohonen(3, 1, [8], config=TrainerConfig(num_iterations=10, seed=42))
    som.train(data)
    path = som.save("example_som.pkl")
    loaded = Kohonen.load("example_som.pkl")
    print(f"Weights identical after reload: {np.array_equal(loaded.get_weights(), som.get_weights())}")

    # Clean up
    if os.path.exists(path):
        os.remove(path)


if __name__ == "__main__":
    run_examples()
