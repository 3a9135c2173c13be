"""
Configuration classes and enums for SOM training
"""

from enum import Enum
from dataclasses import dataclass, asdict
from typing import Optional, Tuple, Dict
import numpy as np

from .exceptions import ConfigurationError


class DecaySchedule(Enum):
    """How learning rate and neighborhood radius shrink over iterations"""

    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    INVERSE = "inverse"
    COSINE = "cosine"


class DifferenceOperator(Enum):
    """Element-wise difference between a node weight and a point"""

    SQUARED = "squared"
    ABSOLUTE = "absolute"


class ReductionOperator(Enum):
    """Reduction of per-dimension differences to one scalar per node"""

    SUM = "sum"
    MAX = "max"


class NeighborhoodFunction(Enum):
    """Falloff of the update strength with topology distance to the winner"""

    GAUSSIAN = "gaussian"
    LINEAR = "linear"


@dataclass
class TrainerConfig:
    """Centralized configuration for training and mapping"""

    num_iterations: int = 100

    # Learning rate
    initial_alpha: float = 0.5
    min_alpha: float = 0.001
    alpha_decay: DecaySchedule = DecaySchedule.EXPONENTIAL

    # Neighborhood radius, auto-calculated from the network size if None
    initial_sigma: Optional[float] = None
    min_sigma: float = 0.01
    sigma_decay: DecaySchedule = DecaySchedule.EXPONENTIAL
    neighborhood: NeighborhoodFunction = NeighborhoodFunction.GAUSSIAN
    cutoff_factor: float = 3.0

    # Winner search
    difference: DifferenceOperator = DifferenceOperator.SQUARED
    reduction: ReductionOperator = ReductionOperator.SUM

    # Random initialization range
    weight_bounds: Tuple[float, float] = (0.0, 1.0)

    # Points per bulk chunk when mapping
    batch_size: int = 1024

    dtype: np.dtype = np.float32

    # Reproducibility
    seed: Optional[int] = None

    def __post_init__(self):
        """Validate values eagerly so bad settings never reach the training loop"""
        if self.num_iterations < 1:
            raise ConfigurationError(
                f"num_iterations must be positive, got {self.num_iterations}"
            )
        if not 0 < self.initial_alpha <= 1:
            raise ConfigurationError(
                f"initial_alpha must be in (0, 1], got {self.initial_alpha}"
            )
        if not 0 < self.min_alpha <= self.initial_alpha:
            raise ConfigurationError(
                f"min_alpha must be in (0, initial_alpha], got {self.min_alpha}"
            )
        if self.initial_sigma is not None and self.initial_sigma <= 0:
            raise ConfigurationError(
                f"initial_sigma must be positive, got {self.initial_sigma}"
            )
        if self.min_sigma <= 0:
            raise ConfigurationError(f"min_sigma must be positive, got {self.min_sigma}")
        if self.cutoff_factor <= 0:
            raise ConfigurationError(
                f"cutoff_factor must be positive, got {self.cutoff_factor}"
            )
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be positive, got {self.batch_size}")

        low, high = self.weight_bounds
        if low > high:
            raise ConfigurationError(f"Invalid weight_bounds {self.weight_bounds}")
        self.weight_bounds = (float(low), float(high))

    def to_dict(self) -> Dict:
        """Convert config to dictionary for serialization"""
        config_dict = asdict(self)
        # Convert enums to strings
        for key, value in config_dict.items():
            if isinstance(value, Enum):
                config_dict[key] = value.value
        config_dict["dtype"] = np.dtype(self.dtype).name
        return config_dict

    @classmethod
    def from_dict(cls, config_dict: Dict) -> "TrainerConfig":
        """Create config from dictionary"""
        config_dict = dict(config_dict)
        # Convert string back to enums
        enum_fields = {
            "alpha_decay": DecaySchedule,
            "sigma_decay": DecaySchedule,
            "neighborhood": NeighborhoodFunction,
            "difference": DifferenceOperator,
            "reduction": ReductionOperator,
        }
        for field_name, enum_class in enum_fields.items():
            if field_name in config_dict and isinstance(config_dict[field_name], str):
                config_dict[field_name] = enum_class(config_dict[field_name])
        if isinstance(config_dict.get("dtype"), str):
            config_dict["dtype"] = np.dtype(config_dict["dtype"]).type
        if "weight_bounds" in config_dict:
            config_dict["weight_bounds"] = tuple(config_dict["weight_bounds"])
        return cls(**config_dict)
