"""
Observability infrastructure for ndsom
Structured logging with per-operation correlation IDs, and Prometheus metrics
for training and mapping
"""

import logging
import time
import uuid
from contextlib import contextmanager
from typing import Sequence

import structlog
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


TRAINING_DURATION = Histogram(
    "ndsom_training_duration_seconds",
    "Wall time of one Kohonen.train() call",
    ["output_dimensions"],
)

TRAINING_ITERATIONS = Counter(
    "ndsom_training_iterations_total", "Passes over the training points"
)

NETWORKS_TRAINED = Counter(
    "ndsom_networks_trained_total", "Completed Kohonen.train() calls"
)

POINTS_MAPPED = Counter("ndsom_points_mapped_total", "Points replaced by a node")

__all__ = [
    "setup_logging",
    "trace_operation",
    "get_metrics",
    "log_training_metrics",
    "log_mapping_metrics",
    "CONTENT_TYPE_LATEST",
]

logger = structlog.get_logger("ndsom")


class CorrelationIDProcessor:
    """Mark entries logged outside of a traced operation"""

    def __call__(self, logger, method_name, event_dict):
        event_dict.setdefault("correlation_id", None)
        return event_dict


def setup_logging(log_level: str = "INFO", json_format: bool = True) -> None:
    """
    Route structlog through the standard logging module

    Args:
        log_level: Name of the stdlib level, e.g. "DEBUG"
        json_format: One JSON object per line; console rendering otherwise
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json_format
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.StackInfoRenderer(),
            CorrelationIDProcessor(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", level=getattr(logging, log_level.upper()))


def get_correlation_id() -> str:
    return uuid.uuid4().hex[:12]


@contextmanager
def trace_operation(operation_name: str, **extra_context):
    """
    Log start, completion or failure of an operation with its duration

    The correlation ID is bound to the logging context for the duration of the
    block, so entries logged by the network, trainer and mapper carry it too.
    Exceptions are logged and re-raised.
    """
    correlation_id = get_correlation_id()
    log = logger.bind(operation=operation_name, **extra_context)
    start_time = time.perf_counter()

    with structlog.contextvars.bound_contextvars(correlation_id=correlation_id):
        log.info("Operation started")
        try:
            yield correlation_id
        except Exception as e:
            log.error(
                "Operation failed",
                duration_seconds=time.perf_counter() - start_time,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        log.info("Operation completed", duration_seconds=time.perf_counter() - start_time)


def get_metrics() -> bytes:
    """Prometheus text exposition of every registered metric"""
    return generate_latest()


def log_training_metrics(network_size: Sequence[int], duration: float, iterations: int):
    # One series per grid rank
    TRAINING_DURATION.labels(output_dimensions=str(len(network_size))).observe(duration)
    TRAINING_ITERATIONS.inc(iterations)
    NETWORKS_TRAINED.inc()


def log_mapping_metrics(n_points: int):
    POINTS_MAPPED.inc(n_points)
