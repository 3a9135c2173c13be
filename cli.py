"""
Command Line Interface for the N-dimensional SOM
"""

import argparse
import json
import os
import sys
import time
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd
import structlog

from ndsom import (
    Kohonen,
    TrainerConfig,
    DecaySchedule,
    DifferenceOperator,
    ReductionOperator,
    NeighborhoodFunction,
    SOMError,
    InputFormatError,
    setup_logging,
    __version__,
)

# Initialize observability
setup_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    json_format=False,  # Use console format for CLI
)

logger = structlog.get_logger()

DATA_FORMATS = ["auto", "csv", "json", "npy", "npz"]


def load_data(
    file_path: str, format: str = "auto", dtype: Optional[type] = np.float32
) -> np.ndarray:
    """Load a numeric array from csv, json, npy or npz; dtype=None keeps the stored type"""
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {file_path}")

    # Auto-detect format if not specified
    if format == "auto":
        format = path.suffix.lower()

    try:
        if format in [".csv", "csv"]:
            df = pd.read_csv(file_path)
            data = df.select_dtypes(include=[np.number]).values
        elif format in [".json", "json"]:
            with open(file_path, "r") as f:
                data = np.array(json.load(f))
        elif format in [".npy", "npy"]:
            data = np.load(file_path)
        elif format in [".npz", "npz"]:
            loaded = np.load(file_path)
            # Use first array if multiple arrays in npz
            key = list(loaded.keys())[0]
            data = loaded[key]
        else:
            raise InputFormatError(f"Unsupported format: {format}")
    except InputFormatError:
        raise
    except (ValueError, OSError) as e:
        raise InputFormatError(f"Failed to load data from {file_path}: {e}")

    if data.size == 0 or not np.issubdtype(data.dtype, np.number):
        raise InputFormatError(f"No numeric data in {file_path}")
    if dtype is not None:
        data = data.astype(dtype)
    return data


def build_config(args) -> TrainerConfig:
    return TrainerConfig(
        num_iterations=args.iterations,
        initial_alpha=args.learning_rate,
        initial_sigma=args.sigma,
        alpha_decay=DecaySchedule(args.decay),
        sigma_decay=DecaySchedule(args.decay),
        neighborhood=NeighborhoodFunction(args.neighborhood),
        difference=DifferenceOperator(args.difference),
        reduction=ReductionOperator(args.reduction),
        seed=args.seed,
    )


def train_command(args) -> None:
    """Train a SOM model"""
    print(f"Loading data from: {args.input}")
    try:
        data = load_data(args.input, args.format)
        if data.ndim != 2:
            raise InputFormatError(f"Expected a 2D table of points, got {data.ndim}D")
        print(f"Data shape: {data.shape}")

        config = build_config(args)
        low, high = float(data.min()), float(data.max())
        config.weight_bounds = (low, high)

        network_size = args.network_size
        print(
            f"Training SOM: {'x'.join(map(str, network_size))}, "
            f"{args.iterations} iterations"
        )

        som = Kohonen(
            data.shape[1],
            len(network_size),
            network_size,
            config=config,
            verbose=args.verbose,
        )
        som.train(data, num_iterations=args.iterations, randomize=args.randomize)

        qe = som.quantization_error(data)
        te = som.topographic_error(data)

        print("Training completed!")
        print(f"Quantization Error: {qe:.4f}")
        print(f"Topographic Error: {te:.4f}")

        som.save(args.output)
        print(f"Model saved to: {args.output}")

    except (SOMError, IOError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def map_command(args) -> None:
    """Map points onto the nodes of a trained SOM"""
    print(f"Loading model from: {args.model}")
    try:
        som = Kohonen.load(args.model)
    except (IOError, OSError) as e:
        print(f"Error loading model: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Loading data from: {args.input}")
    try:
        data = load_data(args.input, args.format)
        mapped = som.get_points(data, np.empty_like(data))
        np.save(args.output, mapped)

        print(f"Mapped points saved to: {args.output}")
        print(f"Mapped {mapped.size // som.network.num_input_dimensions} points")

    except (SOMError, IOError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def quantize_command(args) -> None:
    """Train a fresh network per file and replace every vector by its node"""
    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    rng = np.random.RandomState(args.seed)

    elapsed_time = 0.0
    processed = 0
    for path in args.inputs:
        print(f"Trying file: {path}")
        try:
            data = load_data(path, args.format, dtype=None)
        except (InputFormatError, FileNotFoundError) as e:
            logger.warning("Skipping unreadable file", path=path, error=str(e))
            print("  Error: File not readable.  Skipping.")
            continue

        if data.ndim < 2 or data.shape[-1] != args.channels:
            print(f"  Error: File does not have {args.channels} channels.  Skipping")
            continue

        start_time = time.time()
        try:
            points = data.reshape(-1, args.channels).astype(np.float32)
            if args.sample is not None and args.sample < len(points):
                training = points[rng.choice(len(points), args.sample, replace=False)]
            else:
                training = points

            config = build_config(args)
            config.weight_bounds = (float(points.min()), float(points.max()))
            som = Kohonen(
                args.channels,
                len(args.network_size),
                args.network_size,
                config=config,
                verbose=args.verbose,
            )
            som.train(training, num_iterations=args.iterations, randomize=args.randomize)
            som.get_points(data)
        except SOMError as e:
            print(f"  Error: {e}.  Skipping.")
            continue

        output_path = output_dir / f"{Path(path).stem}_quantized.npy"
        np.save(output_path, data)

        elapsed_time += time.time() - start_time
        processed += 1
        print(
            f"  Elapsed time: {elapsed_time:f} sec, "
            f"Average time: {elapsed_time / processed:f} sec"
        )
        print(f"  Saved: {output_path}")

    print(f"Total time: {elapsed_time:f} seconds.")


def info_command(args) -> None:
    """Show information about a trained SOM"""
    print(f"Loading model from: {args.model}")
    try:
        som = Kohonen.load(args.model)

        info = som.get_info()

        print("\n=== SOM Model Information ===")
        print(f"Network size: {'x'.join(map(str, info['network_size']))}")
        print(f"Input dimensions: {info['num_input_dimensions']}")
        print(f"Total Nodes: {info['n_nodes']}")
        print(f"Node distance: {info['distance_metric']}")
        print(f"Total Iterations: {info['total_iterations']}")
        print(f"Total Points Seen: {info['total_points_seen']}")

        print("\n=== Configuration ===")
        for key, value in info["config"].items():
            print(f"{key}: {value}")

    except (IOError, OSError) as e:
        print(f"Error loading model: {e}", file=sys.stderr)
        sys.exit(1)


def add_training_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--network-size",
        type=int,
        nargs="+",
        default=[16],
        help="Grid extent per output dimension (1 to 3 values)",
    )
    parser.add_argument(
        "--iterations", type=int, default=100, help="Number of training iterations"
    )
    parser.add_argument(
        "--learning-rate", type=float, default=0.5, help="Initial learning rate"
    )
    parser.add_argument(
        "--sigma", type=float, help="Initial neighborhood radius (auto if not set)"
    )
    parser.add_argument(
        "--decay",
        choices=[s.value for s in DecaySchedule],
        default="exponential",
        help="Decay schedule for learning rate and radius",
    )
    parser.add_argument(
        "--neighborhood",
        choices=[n.value for n in NeighborhoodFunction],
        default="gaussian",
        help="Neighborhood function",
    )
    parser.add_argument(
        "--difference",
        choices=[d.value for d in DifferenceOperator],
        default="squared",
        help="Per-dimension difference operator",
    )
    parser.add_argument(
        "--reduction",
        choices=[r.value for r in ReductionOperator],
        default="sum",
        help="Per-node reduction operator",
    )
    parser.add_argument(
        "--randomize", action="store_true", help="Shuffle points every iteration"
    )
    parser.add_argument("--seed", type=int, help="Random seed for reproducibility")
    parser.add_argument(
        "--format", choices=DATA_FORMATS, default="auto", help="Input data format"
    )
    parser.add_argument("--verbose", action="store_true", help="Verbose output")


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="N-dimensional Kohonen Self-Organizing Map CLI",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Train command
    train_parser = subparsers.add_parser("train", help="Train a new SOM model")
    train_parser.add_argument("input", help="Input data file")
    train_parser.add_argument(
        "--output", "-o", default="trained_som.pkl", help="Output model file"
    )
    add_training_arguments(train_parser)

    # Map command
    map_parser = subparsers.add_parser("map", help="Map points with a trained model")
    map_parser.add_argument("model", help="Trained model file")
    map_parser.add_argument("input", help="Input data file")
    map_parser.add_argument(
        "--output", "-o", default="mapped.npy", help="Output array file"
    )
    map_parser.add_argument(
        "--format", choices=DATA_FORMATS, default="auto", help="Input data format"
    )

    # Quantize command
    quantize_parser = subparsers.add_parser(
        "quantize", help="Quantize the vectors of each file to a trained palette"
    )
    quantize_parser.add_argument("inputs", nargs="+", help="Input array files")
    quantize_parser.add_argument(
        "--channels", type=int, default=3, help="Values per vector (e.g. 3 for RGB)"
    )
    quantize_parser.add_argument(
        "--sample", type=int, help="Train on at most this many vectors per file"
    )
    quantize_parser.add_argument(
        "--output-dir", default="quantized", help="Directory for quantized arrays"
    )
    add_training_arguments(quantize_parser)

    # Info command
    info_parser = subparsers.add_parser("info", help="Show model information")
    info_parser.add_argument("model", help="Trained model file")

    # Version command
    subparsers.add_parser("version", help="Show version information")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "train":
        train_command(args)
    elif args.command == "map":
        map_command(args)
    elif args.command == "quantize":
        quantize_command(args)
    elif args.command == "info":
        info_command(args)
    elif args.command == "version":
        print(f"ndsom CLI v{__version__}")
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
