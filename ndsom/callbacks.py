"""
Callback system for monitoring training
"""

import os
from abc import ABC, abstractmethod
from typing import Dict, List, TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from .trainer import Trainer

logger = structlog.get_logger(__name__)


class Callback(ABC):
    """Abstract base class for callbacks"""

    @abstractmethod
    def on_iteration_begin(self, iteration: int, trainer: "Trainer") -> None:
        pass

    @abstractmethod
    def on_iteration_end(self, iteration: int, trainer: "Trainer", metrics: Dict) -> None:
        pass

    @abstractmethod
    def on_training_begin(self, trainer: "Trainer") -> None:
        pass

    @abstractmethod
    def on_training_end(self, trainer: "Trainer") -> None:
        pass

    def on_point(self, iteration: int, point_index: int, winner: int) -> None:
        """Called after each point's weight update. Optional."""


class CheckpointCallback(Callback):
    """Save the network every ``interval`` iterations and at the end"""

    def __init__(self, checkpoint_dir: str, interval: int = 100):
        self.checkpoint_dir = checkpoint_dir
        self.interval = interval
        os.makedirs(checkpoint_dir, exist_ok=True)

    def on_iteration_begin(self, iteration: int, trainer: "Trainer") -> None:
        pass

    def on_iteration_end(self, iteration: int, trainer: "Trainer", metrics: Dict) -> None:
        if iteration % self.interval == 0:
            checkpoint_path = os.path.join(
                self.checkpoint_dir, f"checkpoint_iteration_{iteration}.pkl"
            )
            try:
                trainer.network.save(checkpoint_path)
            except (IOError, OSError) as e:
                logger.warning("Failed to save checkpoint", error=str(e))

    def on_training_begin(self, trainer: "Trainer") -> None:
        pass

    def on_training_end(self, trainer: "Trainer") -> None:
        final_path = os.path.join(self.checkpoint_dir, "final_network.pkl")
        try:
            trainer.network.save(final_path)
        except (IOError, OSError) as e:
            logger.warning("Failed to save final network", error=str(e))


class VisitationLogCallback(Callback):
    """Record the order in which points are visited, one list per iteration"""

    def __init__(self, record_winners: bool = False):
        self.record_winners = record_winners
        self.visits: List[List[int]] = []
        self.winners: List[List[int]] = []

    def on_iteration_begin(self, iteration: int, trainer: "Trainer") -> None:
        self.visits.append([])
        if self.record_winners:
            self.winners.append([])

    def on_iteration_end(self, iteration: int, trainer: "Trainer", metrics: Dict) -> None:
        pass

    def on_training_begin(self, trainer: "Trainer") -> None:
        self.visits = []
        self.winners = []

    def on_training_end(self, trainer: "Trainer") -> None:
        pass

    def on_point(self, iteration: int, point_index: int, winner: int) -> None:
        self.visits[-1].append(point_index)
        if self.record_winners:
            self.winners[-1].append(winner)
