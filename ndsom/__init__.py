"""
N-dimensional Kohonen Self-Organizing Map

Online competitive learning over grids of any dimensionality, with
pluggable node distances and bulk (vectorized) winner search.
"""

from .core import Kohonen
from .network import Network
from .trainer import Trainer
from .mapper import Mapper
from .config import (
    TrainerConfig,
    DecaySchedule,
    DifferenceOperator,
    ReductionOperator,
    NeighborhoodFunction,
)
from .topology import NodeDistance, OneD, TwoD, ThreeD, Custom, default_metric
from .callbacks import Callback, CheckpointCallback, VisitationLogCallback
from .exceptions import SOMError, ConfigurationError, InputFormatError
from .observability import (
    setup_logging,
    trace_operation,
    get_metrics,
    log_training_metrics,
    log_mapping_metrics,
)

__version__ = "0.1.0"

__all__ = [
    "Kohonen",
    "Network",
    "Trainer",
    "Mapper",
    "TrainerConfig",
    "DecaySchedule",
    "DifferenceOperator",
    "ReductionOperator",
    "NeighborhoodFunction",
    "NodeDistance",
    "OneD",
    "TwoD",
    "ThreeD",
    "Custom",
    "default_metric",
    "Callback",
    "CheckpointCallback",
    "VisitationLogCallback",
    "SOMError",
    "ConfigurationError",
    "InputFormatError",
    "setup_logging",
    "trace_operation",
    "get_metrics",
    "log_training_metrics",
    "log_mapping_metrics",
]
