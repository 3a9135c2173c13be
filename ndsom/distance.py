"""
Weight-space distance computation as bulk array operations

The winner search is split into three composable primitives over the node
arena: an element-wise map of differences, a per-node grouped reduction and
a global argmin. Each works on whole arrays, so the work for all nodes of a
point happens in one vectorized call.
"""

from typing import Callable

import numpy as np

from .config import DifferenceOperator, ReductionOperator


class DistanceCalculator:
    """Element-wise difference and reduction operators."""

    @staticmethod
    def squared_difference(weights: np.ndarray, point: np.ndarray) -> np.ndarray:
        """(w - p)^2 per dimension."""
        diff = weights - point
        return np.multiply(diff, diff, out=diff)

    @staticmethod
    def absolute_difference(weights: np.ndarray, point: np.ndarray) -> np.ndarray:
        """|w - p| per dimension."""
        diff = weights - point
        return np.abs(diff, out=diff)

    @staticmethod
    def sum_reduce(differences: np.ndarray) -> np.ndarray:
        return np.sum(differences, axis=-1)

    @staticmethod
    def max_reduce(differences: np.ndarray) -> np.ndarray:
        return np.max(differences, axis=-1)


def get_difference_operator(operator: DifferenceOperator) -> Callable:
    operator_map = {
        DifferenceOperator.SQUARED: DistanceCalculator.squared_difference,
        DifferenceOperator.ABSOLUTE: DistanceCalculator.absolute_difference,
    }
    return operator_map[operator]


def get_reduction_operator(operator: ReductionOperator) -> Callable:
    operator_map = {
        ReductionOperator.SUM: DistanceCalculator.sum_reduce,
        ReductionOperator.MAX: DistanceCalculator.max_reduce,
    }
    return operator_map[operator]


def bulk_difference(
    weights: np.ndarray, points: np.ndarray, difference: Callable
) -> np.ndarray:
    """
    Map step: per-dimension differences between every node and the point(s)

    Args:
        weights: Node arena of shape (n_nodes, n_dims)
        points: One point (n_dims,) or a chunk of points (n_points, n_dims)
        difference: Element-wise operator

    Returns:
        (n_nodes, n_dims) for one point, (n_points, n_nodes, n_dims) for a chunk
    """
    if points.ndim == 1:
        return difference(weights, points)
    return difference(weights[np.newaxis, :, :], points[:, np.newaxis, :])


def grouped_reduce(differences: np.ndarray, reduction: Callable) -> np.ndarray:
    """Reduce step: one scalar per node (the trailing axis is the group)"""
    return reduction(differences)


def global_argmin(distances: np.ndarray) -> np.ndarray:
    """
    Winner step: index of the minimal distance along the node axis

    np.argmin returns the first occurrence, so ties go to the lowest index.
    """
    return np.argmin(distances, axis=-1)


def find_winners(
    weights: np.ndarray,
    points: np.ndarray,
    difference: Callable,
    reduction: Callable,
):
    """Winner indices and their reduced distances for one point or a chunk"""
    distances = grouped_reduce(bulk_difference(weights, points, difference), reduction)
    winners = global_argmin(distances)
    if distances.ndim == 1:
        return winners, distances[winners]
    return winners, distances[np.arange(distances.shape[0]), winners]
