"""
Network of node weight vectors
"""

import os
import pickle
from datetime import datetime
from numbers import Integral
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple, Union

import numpy as np
import structlog

from .exceptions import ConfigurationError
from .topology import NodeDistance, resolve_metric

logger = structlog.get_logger(__name__)


def ensure_models_dir(filepath: str) -> str:
    """Ensure models directory exists and return full path"""
    if not os.path.isabs(filepath):
        models_dir = Path("models")
        models_dir.mkdir(exist_ok=True)
        return str(models_dir / filepath)
    return filepath


def _check_positive_int(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < 1:
        raise ConfigurationError(f"{name} must be at least 1, got {value}")
    return int(value)


class Network:
    """
    Grid of node weight vectors

    Node ``i`` owns row ``i`` of ``weights``. Nodes are laid out in extended
    row-major order of ``network_size``: a linear scan advances the last grid
    dimension fastest, which is how the built-in node distances decode an index.
    """

    def __init__(
        self,
        num_input_dimensions: int,
        num_output_dimensions: int,
        network_size: Sequence[int],
        distance_metric: Optional[Union[NodeDistance, Callable]] = None,
        dtype=np.float32,
    ):
        """
        Args:
            num_input_dimensions: Length of every weight vector and input point
            num_output_dimensions: Number of grid dimensions
            network_size: Grid extent per output dimension
            distance_metric: NodeDistance variant or callable(idx1, idx2).
                Required when num_output_dimensions > 3.
            dtype: Floating point type of the weight arena
        """
        self.num_input_dimensions = _check_positive_int(
            "num_input_dimensions", num_input_dimensions
        )
        self.num_output_dimensions = _check_positive_int(
            "num_output_dimensions", num_output_dimensions
        )

        network_size = tuple(network_size)
        if len(network_size) != self.num_output_dimensions:
            raise ConfigurationError(
                f"network_size has {len(network_size)} entries, "
                f"expected {self.num_output_dimensions}"
            )
        self.network_size: Tuple[int, ...] = tuple(
            _check_positive_int(f"network_size[{d}]", size)
            for d, size in enumerate(network_size)
        )
        self.prod_network_size = int(np.prod(self.network_size))

        self.distance_metric = resolve_metric(distance_metric, self.network_size)
        self.dtype = np.dtype(dtype)
        if not np.issubdtype(self.dtype, np.floating):
            raise ConfigurationError(f"dtype must be floating point, got {self.dtype}")

        self.weights = np.zeros(
            (self.prod_network_size, self.num_input_dimensions), dtype=self.dtype
        )
        self.initialized = False
        self.creation_time = datetime.now().isoformat()

    @property
    def n_nodes(self) -> int:
        return self.prod_network_size

    def initialize(self, nodes) -> None:
        """
        Seed the network with explicit weight vectors

        ``nodes`` holds prod(network_size) * num_input_dimensions values, flat,
        as rows, or shaped network_size + (num_input_dimensions,).
        """
        nodes = np.asarray(nodes, dtype=self.dtype)
        expected = self.prod_network_size * self.num_input_dimensions
        if nodes.size != expected:
            raise ConfigurationError(
                f"initialize expects {expected} values "
                f"({self.prod_network_size} nodes x {self.num_input_dimensions}), "
                f"got {nodes.size}"
            )
        if nodes.ndim > 1 and nodes.shape[-1] != self.num_input_dimensions:
            raise ConfigurationError(
                f"Expected node vectors of length {self.num_input_dimensions}, "
                f"got {nodes.shape[-1]}"
            )
        self.weights[...] = nodes.reshape(self.weights.shape)
        self.initialized = True

    def randomize(self, rng: np.random.RandomState, low: float = 0.0, high: float = 1.0):
        """Fill every weight with an independent uniform value in [low, high)"""
        self.weights[...] = rng.uniform(low, high, size=self.weights.shape)
        self.initialized = True
        logger.debug(
            "Network randomly initialized",
            n_nodes=self.prod_network_size,
            low=low,
            high=high,
        )

    def topology_distances(self, winner: int) -> np.ndarray:
        """Grid distance of every node to ``winner``"""
        return self.distance_metric.row(int(winner), self.prod_network_size)

    def coordinates(self, idx: int) -> Tuple[int, ...]:
        """Decode a linear node index into its grid coordinate"""
        if not 0 <= idx < self.prod_network_size:
            raise ConfigurationError(
                f"Node index {idx} out of range [0, {self.prod_network_size})"
            )
        return tuple(int(c) for c in np.unravel_index(idx, self.network_size))

    def get_weights(self) -> np.ndarray:
        """Copy of the weights shaped as network_size + (num_input_dimensions,)"""
        return self.weights.reshape(
            self.network_size + (self.num_input_dimensions,)
        ).copy()

    def get_state(self) -> dict:
        return {
            "num_input_dimensions": self.num_input_dimensions,
            "num_output_dimensions": self.num_output_dimensions,
            "network_size": self.network_size,
            "distance_metric": self.distance_metric,
            "dtype": self.dtype.name,
            "weights": self.weights,
            "initialized": self.initialized,
            "creation_time": self.creation_time,
        }

    def save(self, filepath: str) -> str:
        """Pickle the network, returns the path written"""
        full_path = ensure_models_dir(filepath)

        try:
            with open(full_path, "wb") as f:
                pickle.dump(self.get_state(), f)
        except (IOError, OSError, pickle.PicklingError, AttributeError) as e:
            raise IOError(f"Failed to save network to {full_path}: {e}")

        logger.info("Network saved", path=full_path)
        return full_path

    @classmethod
    def load(cls, filepath: str) -> "Network":
        full_path = ensure_models_dir(filepath)

        try:
            with open(full_path, "rb") as f:
                save_data = pickle.load(f)
        except (IOError, OSError, pickle.UnpicklingError, EOFError) as e:
            raise IOError(f"Failed to load network from {full_path}: {e}")

        return cls.from_state(save_data)

    @classmethod
    def from_state(cls, state: dict) -> "Network":
        network = cls(
            state["num_input_dimensions"],
            state["num_output_dimensions"],
            state["network_size"],
            distance_metric=state["distance_metric"],
            dtype=state["dtype"],
        )
        network.weights[...] = state["weights"]
        network.initialized = state["initialized"]
        network.creation_time = state["creation_time"]
        return network
