"""
Nearest-node lookup against a trained Network
"""

from typing import Optional, Tuple

import numpy as np
import structlog

from .config import TrainerConfig
from .distance import (
    bulk_difference,
    find_winners,
    get_difference_operator,
    get_reduction_operator,
    grouped_reduce,
)
from .exceptions import ConfigurationError
from .network import Network

logger = structlog.get_logger(__name__)


class Mapper:
    """
    Maps input vectors onto the weight vectors of their winning nodes

    Uses the same difference and reduction operators as training, so a point
    maps to the node that would have won it during the last training step.
    The network is only read, never written.
    """

    def __init__(self, network: Network, config: Optional[TrainerConfig] = None):
        self.network = network
        self.config = config or TrainerConfig()
        self._difference = get_difference_operator(self.config.difference)
        self._reduction = get_reduction_operator(self.config.reduction)

    def _as_rows(self, points) -> np.ndarray:
        n_dims = self.network.num_input_dimensions
        points = np.asarray(points)
        if points.size % n_dims:
            raise ConfigurationError(
                f"{points.size} values is not a whole number of points "
                f"of length {n_dims}"
            )
        if points.ndim > 1 and points.shape[-1] != n_dims:
            raise ConfigurationError(
                f"Expected points of length {n_dims}, got {points.shape[-1]}"
            )
        return points.reshape(-1, n_dims).astype(self.network.dtype, copy=False)

    def _search(self, rows: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Winner index and reduced distance for each row, chunk by chunk"""
        winners = np.empty(len(rows), dtype=np.intp)
        distances = np.empty(len(rows), dtype=np.float64)
        batch_size = self.config.batch_size

        for start in range(0, len(rows), batch_size):
            chunk = rows[start : start + batch_size]
            chunk_winners, chunk_distances = find_winners(
                self.network.weights, chunk, self._difference, self._reduction
            )
            winners[start : start + len(chunk)] = chunk_winners
            distances[start : start + len(chunk)] = chunk_distances

        return winners, distances

    def winners(self, points) -> np.ndarray:
        """Index of the winning node for every point (ties go to the lowest index)"""
        winners, _ = self._search(self._as_rows(points))
        return winners

    def get_points(self, points, mapped: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Replace every point by its winner's weight vector

        Args:
            points: Flat buffer or array whose trailing size is num_input_dimensions
            mapped: Output array with as many values as points. If None, points
                is overwritten in place and must be a writable numpy array.

        Returns:
            The array that received the mapped values
        """
        if mapped is None:
            if not isinstance(points, np.ndarray):
                raise ConfigurationError(
                    "In-place mapping requires a numpy array; pass `mapped` otherwise"
                )
            if not points.flags.writeable:
                raise ConfigurationError("In-place mapping requires a writable array")
            target = points
        else:
            if not isinstance(mapped, np.ndarray):
                raise ConfigurationError("`mapped` must be a numpy array")
            if mapped.size != np.size(points):
                raise ConfigurationError(
                    f"`mapped` holds {mapped.size} values, expected {np.size(points)}"
                )
            target = mapped

        winners = self.winners(points)
        values = self.network.weights[winners]
        if np.issubdtype(target.dtype, np.integer):
            info = np.iinfo(target.dtype)
            values = np.clip(np.rint(values), info.min, info.max)

        target[...] = values.reshape(target.shape)
        logger.debug("Points mapped", n_points=len(winners), in_place=mapped is None)
        return target

    def _non_empty_rows(self, points) -> np.ndarray:
        rows = self._as_rows(points)
        if len(rows) == 0:
            raise ConfigurationError("No points given")
        return rows

    def quantization_error(self, points) -> float:
        """Mean reduced distance between each point and its winner"""
        _, distances = self._search(self._non_empty_rows(points))
        return float(np.mean(distances))

    def topographic_error(
        self, points, max_neighbor_distance: Optional[float] = None
    ) -> float:
        """
        Share of points whose best and second-best nodes are not grid neighbors

        Neighbors are nodes within ``max_neighbor_distance`` of each other,
        sqrt(num_output_dimensions) by default (diagonals count).
        """
        if self.network.n_nodes < 2:
            return 0.0
        if max_neighbor_distance is None:
            max_neighbor_distance = float(np.sqrt(self.network.num_output_dimensions))

        rows = self._non_empty_rows(points)
        errors = 0
        for start in range(0, len(rows), self.config.batch_size):
            chunk = rows[start : start + self.config.batch_size]
            distances = grouped_reduce(
                bulk_difference(self.network.weights, chunk, self._difference),
                self._reduction,
            )
            best_two = np.argsort(distances, axis=1, kind="stable")[:, :2]
            for first, second in best_two:
                if (
                    self.network.distance_metric.distance(first, second)
                    > max_neighbor_distance
                ):
                    errors += 1

        return errors / len(rows)
