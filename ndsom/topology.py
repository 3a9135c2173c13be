"""
Node distance metrics over the network grid

A metric maps a pair of linear node indices to their distance in the grid,
independent of the node weights. Built-in variants decode a linear index in
extended row-major order (the last dimension varies fastest).
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, ClassVar, Sequence

import numpy as np

from .exceptions import ConfigurationError


class NodeDistance:
    """Base class of the node distance variants"""

    kind: ClassVar[str] = "abstract"

    def distance(self, idx1: int, idx2: int) -> float:
        raise NotImplementedError

    def row(self, winner: int, num_nodes: int) -> np.ndarray:
        """Distance from every node in ``range(num_nodes)`` to ``winner``"""
        raise NotImplementedError

    def __call__(self, idx1: int, idx2: int) -> float:
        return self.distance(idx1, idx2)


@dataclass(frozen=True)
class OneD(NodeDistance):
    """Nodes on a chain: absolute difference of the indices"""

    kind: ClassVar[str] = "one_d"

    def distance(self, idx1: int, idx2: int) -> float:
        return float(abs(int(idx1) - int(idx2)))

    def row(self, winner: int, num_nodes: int) -> np.ndarray:
        return np.abs(np.arange(num_nodes, dtype=np.float64) - winner)


@dataclass(frozen=True)
class TwoD(NodeDistance):
    """Nodes on a rows x cols grid, Euclidean distance between (row, col)"""

    cols: int
    kind: ClassVar[str] = "two_d"

    def __post_init__(self):
        if self.cols < 1:
            raise ConfigurationError(f"cols must be positive, got {self.cols}")

    def _decode(self, idx):
        return np.stack([idx // self.cols, idx % self.cols], axis=-1)

    def distance(self, idx1: int, idx2: int) -> float:
        delta = self._decode(np.int64(idx1)) - self._decode(np.int64(idx2))
        return float(np.sqrt(np.sum(delta**2)))

    def row(self, winner: int, num_nodes: int) -> np.ndarray:
        coords = self._decode(np.arange(num_nodes))
        delta = coords - self._decode(np.int64(winner))
        return np.sqrt(np.sum(delta**2, axis=-1, dtype=np.float64))


@dataclass(frozen=True)
class ThreeD(NodeDistance):
    """Nodes in slices of rows x cols, Euclidean distance between (slice, row, col)"""

    cols: int
    slice_size: int
    kind: ClassVar[str] = "three_d"

    def __post_init__(self):
        if self.cols < 1 or self.slice_size < self.cols:
            raise ConfigurationError(
                f"Invalid 3-D layout: cols={self.cols}, slice_size={self.slice_size}"
            )

    def _decode(self, idx):
        return np.stack(
            [
                idx // self.slice_size,
                (idx % self.slice_size) // self.cols,
                idx % self.cols,
            ],
            axis=-1,
        )

    def distance(self, idx1: int, idx2: int) -> float:
        delta = self._decode(np.int64(idx1)) - self._decode(np.int64(idx2))
        return float(np.sqrt(np.sum(delta**2)))

    def row(self, winner: int, num_nodes: int) -> np.ndarray:
        coords = self._decode(np.arange(num_nodes))
        delta = coords - self._decode(np.int64(winner))
        return np.sqrt(np.sum(delta**2, axis=-1, dtype=np.float64))


class Custom(NodeDistance):
    """
    Caller-supplied metric

    The callable must be symmetric, non-negative and return 0 for equal
    indices. Rows are evaluated node by node, so the most recently used
    ``cache_size`` rows are kept in an LRU cache.
    """

    kind: ClassVar[str] = "custom"

    DEFAULT_CACHE_SIZE = 256

    def __init__(
        self, func: Callable[[int, int], float], cache_size: int = DEFAULT_CACHE_SIZE
    ):
        if not callable(func):
            raise ConfigurationError("Custom node distance requires a callable")
        if cache_size < 0:
            raise ConfigurationError(f"cache_size must be non-negative, got {cache_size}")
        self.func = func
        self.cache_size = cache_size
        self._row = lru_cache(maxsize=cache_size)(self._evaluate_row)

    def _evaluate_row(self, winner: int, num_nodes: int) -> np.ndarray:
        row = np.fromiter(
            (self.func(idx, winner) for idx in range(num_nodes)),
            dtype=np.float64,
            count=num_nodes,
        )
        row.flags.writeable = False
        return row

    def distance(self, idx1: int, idx2: int) -> float:
        return float(self.func(int(idx1), int(idx2)))

    def row(self, winner: int, num_nodes: int) -> np.ndarray:
        return self._row(int(winner), int(num_nodes))

    def cache_info(self):
        return self._row.cache_info()

    def __getstate__(self):
        return {"func": self.func, "cache_size": self.cache_size}

    def __setstate__(self, state):
        self.__init__(state["func"], state.get("cache_size", self.DEFAULT_CACHE_SIZE))

    def __repr__(self):
        return f"Custom({getattr(self.func, '__name__', repr(self.func))})"


def default_metric(network_size: Sequence[int]) -> NodeDistance:
    """Built-in metric matching the row-major layout of ``network_size``"""
    if len(network_size) == 1:
        return OneD()
    if len(network_size) == 2:
        return TwoD(cols=int(network_size[1]))
    if len(network_size) == 3:
        return ThreeD(
            cols=int(network_size[2]),
            slice_size=int(network_size[1]) * int(network_size[2]),
        )
    raise ConfigurationError(
        f"No default node distance for {len(network_size)} output dimensions; "
        "supply a custom distance metric"
    )


def resolve_metric(distance_metric, network_size: Sequence[int]) -> NodeDistance:
    """Normalize the user's choice into a NodeDistance variant"""
    if distance_metric is None:
        return default_metric(network_size)
    if isinstance(distance_metric, NodeDistance):
        return distance_metric
    if callable(distance_metric):
        return Custom(distance_metric)
    raise ConfigurationError(
        f"Unsupported distance metric of type {type(distance_metric).__name__}"
    )
