"""
Tests for the online training loop
"""

import pytest
import numpy as np
from ndsom import (
    Network,
    Trainer,
    TrainerConfig,
    DecaySchedule,
    NeighborhoodFunction,
    VisitationLogCallback,
    ConfigurationError,
)


def diagonal_positions(network: Network) -> np.ndarray:
    """Position of each node along the (1, 1, 1) diagonal"""
    return network.weights.mean(axis=1)


@pytest.mark.unit
class TestSchedules:
    """Test learning rate and radius decay"""

    @pytest.mark.unit
    @pytest.mark.parametrize("schedule", list(DecaySchedule))
    def test_learning_rate_decreases(self, chain_network, schedule):
        trainer = Trainer(chain_network, TrainerConfig(alpha_decay=schedule))
        rates = [trainer.learning_rate(t, 50) for t in range(50)]

        assert rates[0] == pytest.approx(0.5)
        assert all(a > b for a, b in zip(rates, rates[1:]))
        assert rates[-1] == pytest.approx(0.001)

    @pytest.mark.unit
    @pytest.mark.parametrize("schedule", list(DecaySchedule))
    def test_radius_shrinks_to_minimum(self, chain_network, schedule):
        trainer = Trainer(chain_network, TrainerConfig(sigma_decay=schedule))
        radii = [trainer.radius(t, 100) for t in range(100)]

        assert radii[0] == pytest.approx(2.0)
        assert all(a > b for a, b in zip(radii, radii[1:]))
        assert radii[-1] == pytest.approx(0.01)

    @pytest.mark.unit
    @pytest.mark.parametrize("schedule", list(DecaySchedule))
    def test_only_winner_moves_at_last_iteration(self, schedule):
        network = Network(3, 1, [16])
        network.initialize(np.full((16, 3), 0.5))
        trainer = Trainer(network, TrainerConfig(alpha_decay=schedule, sigma_decay=schedule))
        before = network.weights.copy()

        trainer.update(
            np.ones(3, dtype=np.float32),
            winner=8,
            alpha=trainer.learning_rate(99, 100),
            sigma=trainer.radius(99, 100),
        )

        moved = np.flatnonzero(np.any(network.weights != before, axis=1))
        assert list(moved) == [8]

    @pytest.mark.unit
    def test_inverse_drops_faster_than_linear(self, chain_network):
        inverse = Trainer(chain_network, TrainerConfig(alpha_decay=DecaySchedule.INVERSE))
        linear = Trainer(chain_network, TrainerConfig(alpha_decay=DecaySchedule.LINEAR))
        assert inverse.learning_rate(25, 100) < linear.learning_rate(25, 100)

    @pytest.mark.unit
    def test_single_iteration_uses_initial_values(self, chain_network):
        trainer = Trainer(chain_network, TrainerConfig())
        assert trainer.learning_rate(0, 1) == pytest.approx(0.5)
        assert trainer.radius(0, 1) == pytest.approx(2.0)

    @pytest.mark.unit
    def test_exponential_approaches_minimum(self, chain_network):
        trainer = Trainer(chain_network, TrainerConfig())
        assert trainer.learning_rate(99, 100) == pytest.approx(0.001)
        assert trainer.learning_rate(50, 100) == pytest.approx(0.5 * 0.002 ** (50 / 99))

    @pytest.mark.unit
    def test_default_radius_from_network_size(self):
        trainer = Trainer(Network(3, 2, [6, 10]))
        assert trainer.radius(0, 10) == pytest.approx(5.0)

    @pytest.mark.unit
    def test_explicit_radius(self, chain_network):
        trainer = Trainer(chain_network, TrainerConfig(initial_sigma=1.5))
        assert trainer.radius(0, 10) == pytest.approx(1.5)


@pytest.mark.unit
class TestNeighborhood:
    """Test neighborhood falloff"""

    @pytest.mark.unit
    def test_gaussian(self, chain_network):
        trainer = Trainer(chain_network, TrainerConfig(cutoff_factor=2.0))
        theta = trainer._neighborhood(np.array([0.0, 1.0, 2.0, 3.0]), 1.0)

        assert theta[0] == 1.0
        assert theta[1] == pytest.approx(np.exp(-0.5))
        assert theta[2] == pytest.approx(np.exp(-2.0))
        assert theta[3] == 0.0  # beyond the cutoff

    @pytest.mark.unit
    def test_linear(self, chain_network):
        trainer = Trainer(
            chain_network, TrainerConfig(neighborhood=NeighborhoodFunction.LINEAR)
        )
        theta = trainer._neighborhood(np.array([0.0, 1.0, 2.0, 3.0]), 2.0)
        np.testing.assert_allclose(theta, [1.0, 0.5, 0.0, 0.0])

    @pytest.mark.unit
    def test_update_moves_only_neighbors(self, chain_network):
        chain_network.initialize(np.full((4, 3), 0.5))
        trainer = Trainer(
            chain_network, TrainerConfig(neighborhood=NeighborhoodFunction.LINEAR)
        )
        trainer.update(np.ones(3, dtype=np.float32), winner=1, alpha=0.5, sigma=2.0)

        np.testing.assert_allclose(diagonal_positions(chain_network), [0.625, 0.75, 0.625, 0.5])


@pytest.mark.unit
class TestTrainValidation:
    """Errors are raised before any training happens"""

    @pytest.mark.unit
    def test_zero_points(self, chain_network):
        trainer = Trainer(chain_network)
        with pytest.raises(ConfigurationError, match="No training points"):
            trainer.train(np.zeros((0, 3)), num_iterations=5)
        assert not chain_network.initialized

    @pytest.mark.unit
    def test_zero_iterations(self, chain_network, two_points):
        with pytest.raises(ConfigurationError):
            Trainer(chain_network).train(two_points, num_iterations=0)

    @pytest.mark.unit
    def test_point_length_mismatch(self, chain_network):
        with pytest.raises(ConfigurationError, match="length 3"):
            Trainer(chain_network).train(np.zeros((4, 2)), num_iterations=1)

    @pytest.mark.unit
    def test_flat_buffer_size_mismatch(self, chain_network):
        with pytest.raises(ConfigurationError):
            Trainer(chain_network).train(np.zeros(7), num_points=2, num_iterations=1)
        with pytest.raises(ConfigurationError):
            Trainer(chain_network).train(np.zeros(7), num_iterations=1)

    @pytest.mark.unit
    def test_num_points_disagrees_with_array(self, chain_network, two_points):
        with pytest.raises(ConfigurationError):
            Trainer(chain_network).train(two_points, num_points=3, num_iterations=1)

    @pytest.mark.unit
    def test_three_dimensional_input(self, chain_network):
        with pytest.raises(ConfigurationError):
            Trainer(chain_network).train(np.zeros((2, 2, 3)), num_iterations=1)


@pytest.mark.integration
class TestTraining:
    """Test the learning behavior"""

    @pytest.mark.integration
    def test_random_initialization_on_first_train(self, chain_network, two_points):
        trainer = Trainer(chain_network, TrainerConfig(seed=3))
        trainer.train(two_points, num_iterations=1)

        assert chain_network.initialized
        assert trainer.metadata["total_iterations"] == 1
        assert trainer.metadata["total_points_seen"] == 2

    @pytest.mark.integration
    def test_explicit_initialization_is_kept(self, chain_network, two_points):
        chain_network.initialize(np.full((4, 3), 0.5))
        trainer = Trainer(chain_network, TrainerConfig(seed=3))
        trainer.train(two_points, num_iterations=1)

        # Every node moved from 0.5 along the diagonal, none was re-drawn
        positions = chain_network.weights
        np.testing.assert_allclose(positions[:, 0], positions[:, 1])
        np.testing.assert_allclose(positions[:, 1], positions[:, 2])

    @pytest.mark.integration
    def test_flat_buffer_equals_array(self, two_points):
        results = []
        for points, num_points in [(two_points, None), (two_points.ravel(), 2)]:
            network = Network(3, 1, [4])
            network.initialize(np.full((4, 3), 0.5))
            Trainer(network, TrainerConfig(seed=0)).train(
                points, num_points=num_points, num_iterations=5
            )
            results.append(network.weights.copy())

        np.testing.assert_array_equal(results[0], results[1])

    @pytest.mark.integration
    def test_single_repeated_point_converges(self, chain_network):
        trainer = Trainer(chain_network, TrainerConfig(seed=7))
        point = np.array([[1.0, 1.0, 1.0]], dtype=np.float32)
        trainer.train(point, num_iterations=500)

        nearest = np.min(np.linalg.norm(chain_network.weights - point, axis=1))
        assert nearest < 1e-3

    @pytest.mark.integration
    def test_randomize_visits_each_point_once(self, sample_data):
        network = Network(3, 2, [3, 3])
        log = VisitationLogCallback()
        trainer = Trainer(network, TrainerConfig(seed=11), callbacks=[log])
        trainer.train(sample_data, num_iterations=6, randomize=True)

        assert len(log.visits) == 6
        for visits in log.visits:
            assert sorted(visits) == list(range(len(sample_data)))
        orders = {tuple(visits) for visits in log.visits}
        assert len(orders) > 1

    @pytest.mark.integration
    def test_sequential_order_without_randomize(self, sample_data):
        log = VisitationLogCallback()
        trainer = Trainer(Network(3, 1, [5]), TrainerConfig(seed=1), callbacks=[log])
        trainer.train(sample_data, num_iterations=3)

        for visits in log.visits:
            assert visits == list(range(len(sample_data)))

    @pytest.mark.integration
    def test_later_points_see_earlier_updates(self, chain_network):
        # Identical nodes tie for both points. Node 0 wins the first point and
        # drags its neighbors along, so the second point must pick node 3.
        chain_network.initialize(np.full((4, 3), 0.5))
        log = VisitationLogCallback(record_winners=True)
        trainer = Trainer(chain_network, TrainerConfig(seed=0), callbacks=[log])
        points = np.array([[0.0, 0.0, 0.0], [1.0, 1.0, 1.0]])
        trainer.train(points, num_iterations=1)

        assert log.winners[0] == [0, 3]

    @pytest.mark.integration
    def test_two_points_end_to_end(self, chain_network, two_points):
        chain_network.initialize(np.full((4, 3), 0.5))
        log = VisitationLogCallback(record_winners=True)
        trainer = Trainer(chain_network, TrainerConfig(seed=0), callbacks=[log])
        trainer.train(two_points, num_iterations=100, randomize=False)

        first, second = log.winners[-1]
        assert first != second

        weights = chain_network.weights
        assert np.linalg.norm(weights[first] - two_points[0]) < 0.05
        assert np.linalg.norm(weights[second] - two_points[1]) < 0.05

        positions = diagonal_positions(chain_network)
        for node in set(range(4)) - {first, second}:
            assert positions[first] < positions[node] < positions[second]

    @pytest.mark.integration
    @pytest.mark.parametrize("randomize", [False, True])
    def test_topology_preserved_along_chain(self, randomize):
        network = Network(1, 1, [6])
        network.initialize(np.full(6, 0.5))
        trainer = Trainer(network, TrainerConfig(seed=21))
        points = np.array([[0.0], [1.0]], dtype=np.float32)
        trainer.train(points, num_iterations=60, randomize=randomize)

        steps = np.diff(network.weights[:, 0])
        assert np.all(steps > 0) or np.all(steps < 0)

    @pytest.mark.integration
    def test_training_reduces_quantization_error(self, sample_data):
        network = Network(3, 2, [4, 4])
        trainer = Trainer(network, TrainerConfig(seed=5))
        trainer.train(sample_data, num_iterations=20, randomize=True)

        history = trainer.metadata["training_history"]
        assert len(history) == 20
        assert history[-1]["metrics"]["qe"] < history[0]["metrics"]["qe"]
        assert history[-1]["alpha"] < history[0]["alpha"]
        assert history[-1]["sigma"] < history[0]["sigma"]

    @pytest.mark.integration
    def test_custom_metric_in_four_dimensions(self, sample_data):
        shape = (2, 2, 2, 2)

        def manhattan(a, b):
            return float(
                sum(abs(x - y) for x, y in zip(np.unravel_index(a, shape), np.unravel_index(b, shape)))
            )

        network = Network(3, 4, shape, distance_metric=manhattan)
        Trainer(network, TrainerConfig(seed=2)).train(sample_data, num_iterations=3)
        assert np.all(np.isfinite(network.weights))

    @pytest.mark.integration
    def test_seed_makes_training_reproducible(self, sample_data):
        results = []
        for _ in range(2):
            network = Network(3, 1, [6])
            Trainer(network, TrainerConfig(seed=99)).train(
                sample_data, num_iterations=4, randomize=True
            )
            results.append(network.weights.copy())

        np.testing.assert_array_equal(results[0], results[1])
