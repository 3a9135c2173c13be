"""
Core SOM facade tying Network, Trainer and Mapper together
"""

import pickle
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from .callbacks import Callback
from .config import TrainerConfig
from .mapper import Mapper
from .network import Network, ensure_models_dir
from .observability import log_mapping_metrics, log_training_metrics, trace_operation
from .topology import NodeDistance
from .trainer import Trainer


class Kohonen:
    """
    N-dimensional Self-Organizing Map

    Example:
        >>> som = Kohonen(3, 1, [16])
        >>> som.train(pixels, num_iterations=20, randomize=True)
        >>> som.get_points(pixels)  # quantized in place
    """

    def __init__(
        self,
        num_input_dimensions: int,
        num_output_dimensions: int,
        network_size: Sequence[int],
        distance_metric: Optional[Union[NodeDistance, Callable]] = None,
        config: Optional[TrainerConfig] = None,
        verbose: bool = False,
    ):
        """
        Args:
            num_input_dimensions: Length of the input vectors
            num_output_dimensions: Number of grid dimensions of the network
            network_size: Grid extent per output dimension
            distance_metric: Node distance, required above 3 output dimensions
            config: Training and mapping settings
            verbose: Show a progress bar while training
        """
        self.config = config or TrainerConfig()
        self.verbose = verbose
        self.network = Network(
            num_input_dimensions,
            num_output_dimensions,
            network_size,
            distance_metric=distance_metric,
            dtype=self.config.dtype,
        )
        self.trainer = Trainer(self.network, self.config, verbose=verbose)
        self.mapper = Mapper(self.network, self.config)
        self.metadata = {
            "creation_time": datetime.now().isoformat(),
            "config": self.config.to_dict(),
        }

    @property
    def n_nodes(self) -> int:
        return self.network.prod_network_size

    def initialize(self, nodes) -> "Kohonen":
        """Seed the node weights; must precede train() to take effect"""
        self.network.initialize(nodes)
        return self

    def train(
        self,
        points,
        num_points: Optional[int] = None,
        num_iterations: Optional[int] = None,
        randomize: bool = False,
        callbacks: Optional[List[Callback]] = None,
    ) -> "Kohonen":
        """
        Train the network on the points

        Args:
            points: Flat buffer or (num_points, num_input_dimensions) array
            num_points: Number of points, inferred if None
            num_iterations: Passes over the data (uses config if None)
            randomize: Shuffle the visiting order every iteration
            callbacks: Callbacks for this training run

        Returns:
            self for method chaining
        """
        if num_iterations is None:
            num_iterations = self.config.num_iterations
        self.trainer.callbacks = list(callbacks or [])

        with trace_operation(
            "train",
            network_size=list(self.network.network_size),
            iterations=num_iterations,
            randomize=randomize,
        ):
            start_time = time.time()
            self.trainer.train(points, num_points, num_iterations, randomize)
            log_training_metrics(
                self.network.network_size, time.time() - start_time, num_iterations
            )

        return self

    def get_points(self, points, mapped: Optional[np.ndarray] = None) -> np.ndarray:
        """Map each point onto its winner's weights, in place if mapped is None"""
        with trace_operation("get_points", in_place=mapped is None):
            result = self.mapper.get_points(points, mapped)
            log_mapping_metrics(result.size // self.network.num_input_dimensions)
        return result

    def winners(self, points) -> np.ndarray:
        return self.mapper.winners(points)

    def quantization_error(self, points) -> float:
        return self.mapper.quantization_error(points)

    def topographic_error(
        self, points, max_neighbor_distance: Optional[float] = None
    ) -> float:
        return self.mapper.topographic_error(points, max_neighbor_distance)

    def get_weights(self) -> np.ndarray:
        return self.network.get_weights()

    def get_info(self) -> Dict:
        """Get comprehensive information about the SOM"""
        return {
            "config": self.config.to_dict(),
            "metadata": self.metadata,
            "network_size": self.network.network_size,
            "n_nodes": self.n_nodes,
            "num_input_dimensions": self.network.num_input_dimensions,
            "distance_metric": repr(self.network.distance_metric),
            "initialized": self.network.initialized,
            "total_iterations": self.trainer.metadata["total_iterations"],
            "total_points_seen": self.trainer.metadata["total_points_seen"],
        }

    def save(self, filepath: str) -> str:
        """Save network, config and training metadata to file"""
        full_path = ensure_models_dir(filepath)

        save_data = {
            "config": self.config.to_dict(),
            "network": self.network.get_state(),
            "metadata": self.metadata,
            "training_metadata": self.trainer.metadata,
        }

        try:
            with open(full_path, "wb") as f:
                pickle.dump(save_data, f)
        except (IOError, OSError, pickle.PicklingError, AttributeError) as e:
            raise IOError(f"Failed to save model to {full_path}: {e}")

        if self.verbose:
            print(f"Model saved to {full_path}")
        return full_path

    @classmethod
    def load(cls, filepath: str) -> "Kohonen":
        """Load a model written by save()"""
        full_path = ensure_models_dir(filepath)

        try:
            with open(full_path, "rb") as f:
                save_data = pickle.load(f)
        except (IOError, OSError, pickle.UnpicklingError, EOFError) as e:
            raise IOError(f"Failed to load model from {full_path}: {e}")

        config = TrainerConfig.from_dict(save_data["config"])
        state = save_data["network"]
        som = cls(
            state["num_input_dimensions"],
            state["num_output_dimensions"],
            state["network_size"],
            distance_metric=state["distance_metric"],
            config=config,
        )
        som.network.weights[...] = state["weights"]
        som.network.initialized = state["initialized"]
        som.network.creation_time = state["creation_time"]
        som.metadata = save_data["metadata"]
        som.trainer.metadata = save_data["training_metadata"]
        return som
