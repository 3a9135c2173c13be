"""
Online competitive learning for a Network
"""

from datetime import datetime
from numbers import Integral
from typing import Dict, List, Optional, Tuple

import numpy as np
import structlog
from tqdm import tqdm

from .callbacks import Callback
from .config import DecaySchedule, NeighborhoodFunction, TrainerConfig
from .distance import (
    bulk_difference,
    get_difference_operator,
    get_reduction_operator,
    global_argmin,
    grouped_reduce,
)
from .exceptions import ConfigurationError
from .network import Network

logger = structlog.get_logger(__name__)


class Trainer:
    """
    Drives the iterative learning loop over a Network

    Points are processed strictly one after another: each point's winner
    search sees every earlier point's weight update. The work for a single
    point (differences, reduction, winner, update) is vectorized over all nodes.
    """

    # Prevent exp() underflow in the gaussian neighborhood
    UNDERFLOW_PROTECTION = -50

    # Shape of the inverse schedule; higher drops faster early on
    INVERSE_STEEPNESS = 9.0

    def __init__(
        self,
        network: Network,
        config: Optional[TrainerConfig] = None,
        callbacks: Optional[List[Callback]] = None,
        verbose: bool = False,
    ):
        self.network = network
        self.config = config or TrainerConfig()
        self.callbacks: List[Callback] = list(callbacks or [])
        self.verbose = verbose

        # Local RNG for reproducibility
        if self.config.seed is not None:
            self.rng = np.random.RandomState(self.config.seed)
        else:
            self.rng = np.random.RandomState()

        # Operators are chosen once here, never per call
        self._difference = get_difference_operator(self.config.difference)
        self._reduction = get_reduction_operator(self.config.reduction)
        self._neighborhood = self._get_neighborhood_function()

        self.initial_sigma = (
            self.config.initial_sigma
            if self.config.initial_sigma is not None
            else max(network.network_size) / 2
        )
        self.min_sigma = min(self.config.min_sigma, self.initial_sigma)

        self.metadata = {
            "training_history": [],
            "total_iterations": 0,
            "total_points_seen": 0,
        }

    def _get_neighborhood_function(self):
        neighborhood_map = {
            NeighborhoodFunction.GAUSSIAN: self._gaussian_neighborhood,
            NeighborhoodFunction.LINEAR: self._linear_neighborhood,
        }
        return neighborhood_map[self.config.neighborhood]

    def _gaussian_neighborhood(self, distances: np.ndarray, sigma: float) -> np.ndarray:
        """Gaussian falloff, zero beyond cutoff_factor * sigma"""
        exponent = -(distances**2) / (2 * (sigma**2))
        exponent = np.maximum(exponent, self.UNDERFLOW_PROTECTION)
        theta = np.exp(exponent)
        theta[distances > self.config.cutoff_factor * sigma] = 0.0
        return theta

    @staticmethod
    def _linear_neighborhood(distances: np.ndarray, sigma: float) -> np.ndarray:
        """Triangular falloff reaching zero at distance sigma"""
        return np.clip(1.0 - distances / sigma, 0.0, 1.0)

    @staticmethod
    def _get_decay_value(
        t: int, t_max: int, initial: float, final: float, schedule: DecaySchedule
    ) -> float:
        """Value of a decaying parameter at iteration t of t_max"""
        if t_max <= 1:
            return initial

        if schedule == DecaySchedule.LINEAR:
            return initial - (initial - final) * (t / (t_max - 1))
        elif schedule == DecaySchedule.INVERSE:
            s = t / (t_max - 1)
            return final + (initial - final) * (1 - s) / (1 + Trainer.INVERSE_STEEPNESS * s)
        elif schedule == DecaySchedule.COSINE:
            return final + (initial - final) * (1 + np.cos(np.pi * t / (t_max - 1))) / 2
        else:  # EXPONENTIAL
            decay_rate = -np.log(final / initial) / (t_max - 1)
            return initial * np.exp(-decay_rate * t)

    def learning_rate(self, t: int, num_iterations: int) -> float:
        return self._get_decay_value(
            t,
            num_iterations,
            self.config.initial_alpha,
            self.config.min_alpha,
            self.config.alpha_decay,
        )

    def radius(self, t: int, num_iterations: int) -> float:
        return self._get_decay_value(
            t, num_iterations, self.initial_sigma, self.min_sigma, self.config.sigma_decay
        )

    def _prepare_points(self, points, num_points: Optional[int]) -> np.ndarray:
        """Validate the training points and return them as (num_points, n_dims)"""
        n_dims = self.network.num_input_dimensions
        points = np.asarray(points, dtype=self.network.dtype)

        if num_points is not None and (
            isinstance(num_points, bool) or not isinstance(num_points, Integral)
        ):
            raise ConfigurationError(f"num_points must be an integer, got {num_points!r}")

        if points.ndim == 2:
            if points.shape[1] != n_dims:
                raise ConfigurationError(
                    f"Expected points of length {n_dims}, got {points.shape[1]}"
                )
            if num_points is None:
                num_points = points.shape[0]
            elif num_points != points.shape[0]:
                raise ConfigurationError(
                    f"num_points is {num_points} but {points.shape[0]} points were given"
                )
        elif points.ndim == 1:
            if num_points is None:
                if points.size % n_dims:
                    raise ConfigurationError(
                        f"Flat buffer of {points.size} values is not a whole number "
                        f"of points of length {n_dims}"
                    )
                num_points = points.size // n_dims
            elif points.size != num_points * n_dims:
                raise ConfigurationError(
                    f"Expected {num_points} x {n_dims} = {num_points * n_dims} values, "
                    f"got {points.size}"
                )
        else:
            raise ConfigurationError(
                f"Points must be a flat buffer or a 2D array, got {points.ndim}D"
            )

        if num_points == 0:
            raise ConfigurationError("No training points given")

        return points.reshape(num_points, n_dims)

    def iteration_order(self, num_points: int, randomize: bool) -> np.ndarray:
        """Visiting order for one iteration: a fresh permutation or the identity"""
        if randomize:
            return self.rng.permutation(num_points)
        return np.arange(num_points)

    def find_winner(self, point: np.ndarray) -> Tuple[int, float]:
        """Winner node for one point and its reduced distance"""
        differences = bulk_difference(self.network.weights, point, self._difference)
        distances = grouped_reduce(differences, self._reduction)
        winner = int(global_argmin(distances))
        return winner, float(distances[winner])

    def update(self, point: np.ndarray, winner: int, alpha: float, sigma: float) -> None:
        """Move every node toward the point, weighted by its grid distance to the winner"""
        theta = self._neighborhood(self.network.topology_distances(winner), sigma)
        affected = np.flatnonzero(theta)

        weights = self.network.weights
        update = theta[affected, np.newaxis] * (point - weights[affected])
        weights[affected] += alpha * update

    def train(
        self,
        points,
        num_points: Optional[int] = None,
        num_iterations: Optional[int] = None,
        randomize: bool = False,
    ) -> "Trainer":
        """
        Train the network on the points

        Args:
            points: Flat buffer of num_points * num_input_dimensions values
                or an array of shape (num_points, num_input_dimensions)
            num_points: Number of points, inferred from the input if None
            num_iterations: Passes over the data (uses config if None)
            randomize: Visit the points in a fresh random order every iteration

        Returns:
            self for method chaining
        """
        if num_iterations is None:
            num_iterations = self.config.num_iterations
        if isinstance(num_iterations, bool) or not isinstance(num_iterations, Integral):
            raise ConfigurationError(
                f"num_iterations must be an integer, got {num_iterations!r}"
            )
        if num_iterations < 1:
            raise ConfigurationError(
                f"num_iterations must be positive, got {num_iterations}"
            )

        data = self._prepare_points(points, num_points)

        if not self.network.initialized:
            low, high = self.config.weight_bounds
            self.network.randomize(self.rng, low, high)

        for callback in self.callbacks:
            callback.on_training_begin(self)

        self._train_loop(data, num_iterations, randomize)

        for callback in self.callbacks:
            callback.on_training_end(self)

        self.metadata["total_iterations"] += num_iterations
        self.metadata["total_points_seen"] += len(data) * num_iterations
        self.metadata["last_training"] = datetime.now().isoformat()

        return self

    def _train_loop(self, data: np.ndarray, num_iterations: int, randomize: bool) -> None:
        iterator = range(num_iterations)
        if self.verbose:
            iterator = tqdm(iterator, desc="Training SOM")

        for t in iterator:
            for callback in self.callbacks:
                callback.on_iteration_begin(t, self)

            alpha = self.learning_rate(t, num_iterations)
            sigma = self.radius(t, num_iterations)

            metrics = self._process_iteration(data, t, alpha, sigma, randomize)

            if self.verbose:
                iterator.set_postfix(
                    {"QE": f"{metrics['qe']:.4f}", "σ": f"{sigma:.3f}", "α": f"{alpha:.4f}"}
                )

            self.metadata["training_history"].append(
                {"iteration": t, "metrics": metrics, "sigma": sigma, "alpha": alpha}
            )

            for callback in self.callbacks:
                callback.on_iteration_end(t, self, metrics)

        logger.debug(
            "Training loop finished",
            iterations=num_iterations,
            n_points=len(data),
            randomize=randomize,
        )

    def _process_iteration(
        self, data: np.ndarray, t: int, alpha: float, sigma: float, randomize: bool
    ) -> Dict:
        """One pass over all points, one at a time"""
        total_error = 0.0

        for point_index in self.iteration_order(len(data), randomize):
            point = data[point_index]
            winner, distance = self.find_winner(point)
            total_error += distance

            self.update(point, winner, alpha, sigma)

            for callback in self.callbacks:
                callback.on_point(t, int(point_index), winner)

        return {"qe": total_error / len(data)}
