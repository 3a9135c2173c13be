"""
Pytest configuration and fixtures for ndsom tests
"""

import pytest
import numpy as np
from ndsom import Kohonen, Network, TrainerConfig


@pytest.fixture
def sample_data():
    """Generate sample 3D data for testing"""
    rng = np.random.RandomState(42)
    return rng.random_sample((50, 3)).astype(np.float32)


@pytest.fixture
def small_data():
    """Generate small dataset for quick tests"""
    rng = np.random.RandomState(42)
    return rng.random_sample((10, 2)).astype(np.float32)


@pytest.fixture
def basic_config():
    """Basic configuration for testing"""
    return TrainerConfig(num_iterations=10, seed=42)


@pytest.fixture
def two_points():
    """The two opposite corners of the unit cube"""
    return np.array([[0.0, 0.0, 0.0], [1.0, 1.0, 1.0]], dtype=np.float32)


@pytest.fixture
def chain_network():
    """1-D network of four nodes over 3-D inputs"""
    return Network(3, 1, [4])


@pytest.fixture
def trained_som(basic_config, sample_data):
    """Pre-trained 5x5 SOM for testing"""
    som = Kohonen(3, 2, [5, 5], config=basic_config)
    som.train(sample_data)
    return som
