"""
Unit tests for ConnectedLayer class.

Tests cover construction, forward and backward propagation, gradient descent
updates, mutation, resizing, copying and persistence.
"""

import io
import pytest
import numpy as np
from lcsnet.codec import INT_SIZE, FLOAT_SIZE
from lcsnet.layers import ConnectedLayer, LayerType, N_OUTPUTS_MAX
from lcsnet.layers.layer_base import WEIGHT_MIN, WEIGHT_MAX, MU_MIN, MU_MAX
from lcsnet.run.config import (LAYER_EVOLVE_WEIGHTS, LAYER_EVOLVE_NEURONS, LAYER_EVOLVE_FUNCTIONS,
                               LAYER_SGD_WEIGHTS, LAYER_EVOLVE_ETA, LAYER_EVOLVE_CONNECT)
from lcsnet.activations import activations
from lcsnet.utils import rand_init
from unittest.mock import Mock, patch


# ============================================================================
# Test Fixtures
# ============================================================================

@pytest.fixture
def linear_layer(config):
    """2 -> 2 linear layer with known weights, trained without momentum."""
    layer = ConnectedLayer(config, 2, 2, function='linear', options=LAYER_SGD_WEIGHTS,
                           eta=0.1, momentum=0.0, decay=0.0)
    layer.weights[:] = [[1.0, 2.0],
                        [3.0, 4.0]]
    layer.biases[:]  = [0.5, -0.5]
    return layer


# ============================================================================
# Test Initialization
# ============================================================================

class TestConnectedLayerInit:
    """Test ConnectedLayer construction."""

    def test_shapes(self, config):
        layer = ConnectedLayer(config, 3, 4, 10, function='relu')

        assert layer.layer_type == LayerType.CONNECTED
        assert layer.n_inputs == 3
        assert layer.n_outputs == 4
        assert layer.max_outputs == 10
        assert layer.weights.shape == (4, 3)
        assert layer.weight_active.shape == (4, 3)
        assert layer.weight_active.all()
        assert layer.biases.shape == (4,)
        assert layer.output.shape == (4,)
        assert layer.delta.shape == (4,)
        assert layer.state.shape == (4,)

    def test_buffers_start_zeroed(self, config):
        layer = ConnectedLayer(config, 3, 4)
        np.testing.assert_array_equal(layer.output, np.zeros(4))
        np.testing.assert_array_equal(layer.delta, np.zeros(4))
        np.testing.assert_array_equal(layer.biases, np.zeros(4))

    def test_n_max_defaults_to_n_init(self, config):
        assert ConnectedLayer(config, 3, 4).max_outputs == 4

    def test_parameters_default_to_config(self, config):
        config.eta = 0.2
        config.momentum = 0.3
        layer = ConnectedLayer(config, 1, 1)
        assert layer.eta == 0.2
        assert layer.momentum == 0.3

    def test_evolved_eta_starts_in_range(self, config):
        layer = ConnectedLayer(config, 1, 1, options=LAYER_EVOLVE_ETA, eta=0.5)
        assert layer.eta_min <= layer.eta <= layer.eta_max == 0.5

    def test_mutation_rates_in_range(self, config):
        layer = ConnectedLayer(config, 1, 1)
        assert len(layer.mu) == ConnectedLayer.N_MU
        assert np.all((layer.mu >= MU_MIN) & (layer.mu <= MU_MAX))

    @pytest.mark.parametrize("n_inputs, n_init", [(0, 1), (1, 0), (1, N_OUTPUTS_MAX + 1)])
    def test_invalid_geometry_raises(self, config, n_inputs, n_init):
        with pytest.raises(ValueError):
            ConnectedLayer(config, n_inputs, n_init)

    def test_max_below_init_raises(self, config):
        with pytest.raises(ValueError):
            ConnectedLayer(config, 2, 5, 3)

    def test_unknown_function_raises(self, config):
        with pytest.raises(ValueError, match="Unknown activation function"):
            ConnectedLayer(config, 2, 2, function='bogus')


# ============================================================================
# Test Propagation
# ============================================================================

class TestConnectedLayerForward:
    """Test forward propagation."""

    def test_linear_forward(self, linear_layer):
        linear_layer.forward(np.array([1.0, 1.0]))
        np.testing.assert_allclose(linear_layer.output, [3.5, 6.5])
        np.testing.assert_allclose(linear_layer.state, [3.5, 6.5])

    def test_activation_applied_to_state(self, config):
        layer = ConnectedLayer(config, 2, 2, function='relu')
        layer.weights[:] = [[1.0, 0.0], [-1.0, 0.0]]
        layer.forward(np.array([2.0, 0.0]))
        np.testing.assert_allclose(layer.state, [2.0, -2.0])
        np.testing.assert_allclose(layer.output, [2.0, 0.0])

    def test_output_buffer_is_reused(self, linear_layer):
        buffer = linear_layer.output
        linear_layer.forward(np.array([1.0, 0.0]))
        assert linear_layer.output is buffer
        assert linear_layer.get_output() is buffer

    def test_deterministic(self, linear_layer):
        linear_layer.forward(np.array([0.3, -0.7]))
        first = linear_layer.output.copy()
        linear_layer.forward(np.array([0.3, -0.7]))
        np.testing.assert_array_equal(linear_layer.output, first)


class TestConnectedLayerBackward:
    """Test backpropagation and updates."""

    def test_backward_propagates_into_delta(self, linear_layer):
        x = np.array([1.0, 1.0])
        linear_layer.forward(x)
        linear_layer.delta[:] = [1.0, -1.0]
        upstream = np.zeros(2)
        linear_layer.backward(x, upstream)
        # weights.T @ delta
        np.testing.assert_allclose(upstream, [-2.0, -2.0])

    def test_backward_accumulates(self, linear_layer):
        x = np.array([1.0, 1.0])
        linear_layer.forward(x)
        linear_layer.delta[:] = [1.0, 0.0]
        upstream = np.ones(2)
        linear_layer.backward(x, upstream)
        np.testing.assert_allclose(upstream, [2.0, 3.0])

    def test_backward_without_upstream(self, linear_layer):
        x = np.array([1.0, 1.0])
        linear_layer.forward(x)
        linear_layer.delta[:] = [1.0, 1.0]
        linear_layer.backward(x, None)
        np.testing.assert_allclose(linear_layer.bias_updates, [1.0, 1.0])

    def test_backward_scales_by_activation_gradient(self, config):
        layer = ConnectedLayer(config, 1, 2, function='relu', options=LAYER_SGD_WEIGHTS)
        layer.weights[:] = [[1.0], [-1.0]]
        layer.forward(np.array([1.0]))
        layer.delta[:] = [5.0, 5.0]
        layer.backward(np.array([1.0]), None)
        np.testing.assert_allclose(layer.delta, [5.0, 0.0])

    def test_update_applies_gradient(self, linear_layer):
        x = np.array([1.0, 2.0])
        linear_layer.forward(x)
        linear_layer.delta[:] = [1.0, -1.0]
        linear_layer.backward(x, None)
        linear_layer.update()

        np.testing.assert_allclose(linear_layer.weights, [[1.1, 2.2], [2.9, 3.8]])
        np.testing.assert_allclose(linear_layer.biases, [0.6, -0.6])
        # momentum 0 clears the accumulated updates
        np.testing.assert_allclose(linear_layer.weight_updates, np.zeros((2, 2)))

    def test_update_reduces_error(self, config):
        layer = ConnectedLayer(config, 2, 1, function='linear', options=LAYER_SGD_WEIGHTS,
                               eta=0.1, momentum=0.0)
        x, y = np.array([0.5, -0.3]), 1.0
        layer.forward(x)
        before = abs(y - layer.output[0])
        for _ in range(20):
            layer.forward(x)
            layer.delta[:] = y - layer.output
            layer.backward(x, None)
            layer.update()
        layer.forward(x)
        assert abs(y - layer.output[0]) < before

    def test_no_update_without_sgd(self, config):
        layer = ConnectedLayer(config, 2, 2, function='linear', options=0, eta=0.1)
        weights = layer.weights.copy()
        x = np.array([1.0, 1.0])
        layer.forward(x)
        layer.delta[:] = [1.0, 1.0]
        layer.backward(x, None)
        layer.update()
        np.testing.assert_array_equal(layer.weights, weights)

    def test_update_clamps_weights(self, linear_layer):
        x = np.array([1.0, 1.0])
        linear_layer.forward(x)
        linear_layer.delta[:] = [1e6, 1e6]
        linear_layer.backward(x, None)
        linear_layer.update()
        assert linear_layer.weights.max() <= WEIGHT_MAX
        assert linear_layer.weights.min() >= WEIGHT_MIN


# ============================================================================
# Test Mutation
# ============================================================================

class TestConnectedLayerMutate:
    """Test mutation operators."""

    def test_no_options_no_change(self, config):
        layer = ConnectedLayer(config, 2, 2, options=0)
        weights = layer.weights.copy()
        assert layer.mutate() is False
        np.testing.assert_array_equal(layer.weights, weights)

    def test_weight_mutation(self, config):
        layer = ConnectedLayer(config, 2, 2, options=LAYER_EVOLVE_WEIGHTS)
        weights = layer.weights.copy()
        assert layer.mutate() is True
        assert not np.array_equal(layer.weights, weights)

    def test_mutation_rates_adapt(self, config):
        layer = ConnectedLayer(config, 2, 2, options=LAYER_EVOLVE_WEIGHTS)
        mu = layer.mu.copy()
        layer.mutate()
        assert not np.array_equal(layer.mu, mu)
        assert np.all((layer.mu >= MU_MIN) & (layer.mu <= MU_MAX))

    def test_neuron_mutation_keeps_bounds(self, config):
        layer = ConnectedLayer(config, 3, 2, 5, options=LAYER_EVOLVE_NEURONS, max_neuron_grow=3)
        layer.mu[:] = 1.0
        sizes = set()
        for _ in range(300):
            layer.mutate()
            assert 1 <= layer.n_outputs <= layer.max_outputs
            assert layer.weights.shape == (layer.n_outputs, 3)
            assert layer.output.shape == (layer.n_outputs,)
            assert layer.delta.shape == (layer.n_outputs,)
            sizes.add(layer.n_outputs)
        assert len(sizes) > 1

    def test_add_neurons_preserves_existing_units(self, config):
        layer = ConnectedLayer(config, 2, 2, 4)
        layer.biases[:] = [0.1, 0.2]
        weights = layer.weights.copy()
        layer._add_neurons(2)

        assert layer.n_outputs == 4
        np.testing.assert_array_equal(layer.weights[:2], weights)
        np.testing.assert_array_equal(layer.biases, [0.1, 0.2, 0.0, 0.0])

    def test_remove_neurons(self, config):
        layer = ConnectedLayer(config, 2, 3, 3)
        weights = layer.weights.copy()
        layer._add_neurons(-2)
        assert layer.n_outputs == 1
        np.testing.assert_array_equal(layer.weights, weights[:1])

    def test_connectivity_mutation(self, config):
        layer = ConnectedLayer(config, 4, 3, options=LAYER_EVOLVE_CONNECT)
        layer.mu[:] = 1.0
        changed = False
        for _ in range(50):
            changed |= layer.mutate()
            # every unit keeps at least one input
            assert layer.weight_active.any(axis=1).all()
            # inactive weights are zero
            assert np.all(layer.weights[~layer.weight_active] == 0.0)
        assert changed

    def test_function_mutation(self, config):
        layer = ConnectedLayer(config, 2, 2, function='linear', options=LAYER_EVOLVE_FUNCTIONS)
        assert layer._mutate_functions(1.0) is True
        assert layer.function != 'linear'
        assert layer._mutate_functions(0.0) is False

    def test_function_mutation_draws_from_seeded_generators(self, config):
        first = ConnectedLayer(config, 2, 2, function='linear', options=LAYER_EVOLVE_FUNCTIONS)
        second = first.copy()
        rand_init(3)
        first._mutate_functions(1.0)
        rand_init(3)
        second._mutate_functions(1.0)
        assert first.function == second.function

    def test_function_mutation_picks_by_index(self, config):
        layer = ConnectedLayer(config, 2, 2, function='linear', options=LAYER_EVOLVE_FUNCTIONS)
        with patch('lcsnet.layers.layer_connected.irand_uniform', return_value=0) as draw:
            layer._mutate_functions(1.0)
        draw.assert_called_once_with(0, len(activations) - 1)
        assert layer.function == [name for name in activations if name != 'linear'][0]

    def test_eta_mutation_stays_in_range(self, config):
        layer = ConnectedLayer(config, 2, 2, options=LAYER_EVOLVE_ETA, eta=0.1)
        for _ in range(50):
            layer.mutate()
            assert layer.eta_min <= layer.eta <= layer.eta_max


# ============================================================================
# Test Resize, Rand, Copy
# ============================================================================

class TestConnectedLayerResize:
    """Test resizing to a new number of inputs."""

    def test_grow_inputs(self, linear_layer):
        prev = Mock(n_outputs=3)
        linear_layer.resize(prev)

        assert linear_layer.n_inputs == 3
        assert linear_layer.weights.shape == (2, 3)
        np.testing.assert_array_equal(linear_layer.weights[:, :2], [[1.0, 2.0], [3.0, 4.0]])

    def test_shrink_inputs(self, linear_layer):
        linear_layer.resize(Mock(n_outputs=1))
        np.testing.assert_array_equal(linear_layer.weights, [[1.0], [3.0]])
        assert linear_layer.weight_updates.shape == (2, 1)

    def test_resize_keeps_outputs(self, linear_layer):
        linear_layer.resize(Mock(n_outputs=5))
        assert linear_layer.n_outputs == 2
        assert linear_layer.output.shape == (2,)


class TestConnectedLayerCopy:
    """Test copying."""

    def test_copy_is_independent(self, linear_layer):
        clone = linear_layer.copy()
        np.testing.assert_array_equal(clone.weights, linear_layer.weights)

        clone.weights[0, 0] = 99.0
        clone.forward(np.array([1.0, 1.0]))
        assert linear_layer.weights[0, 0] == 1.0
        np.testing.assert_array_equal(linear_layer.output, np.zeros(2))

    def test_mutating_copy_leaves_source_unchanged(self, config):
        layer = ConnectedLayer(config, 2, 3, 8, options=LAYER_EVOLVE_NEURONS | LAYER_EVOLVE_WEIGHTS,
                               max_neuron_grow=2)
        layer.mu[:] = 1.0
        weights = layer.weights.copy()

        clone = layer.copy()
        for _ in range(10):
            clone.mutate()

        assert layer.n_outputs == 3
        np.testing.assert_array_equal(layer.weights, weights)
        assert not np.array_equal(clone.weights[:1], weights[:1])

    def test_copy_shares_config(self, linear_layer, config):
        assert linear_layer.copy()._config is config

    def test_rand_keeps_mask(self, config):
        layer = ConnectedLayer(config, 2, 2)
        layer.weight_active[0, 0] = False
        layer.biases[:] = 1.0
        layer.rand()
        assert layer.weights[0, 0] == 0.0
        np.testing.assert_array_equal(layer.biases, np.zeros(2))


# ============================================================================
# Test Persistence
# ============================================================================

class TestConnectedLayerPersistence:
    """Test save and load."""

    def test_round_trip(self, config):
        layer = ConnectedLayer(config, 3, 2, 6, function='tanh',
                               options=LAYER_SGD_WEIGHTS | LAYER_EVOLVE_WEIGHTS)
        layer.weight_active[1, 2] = False
        layer.weights[1, 2] = 0.0
        layer.biases[:] = [0.25, -0.75]

        sink = io.BytesIO()
        written = layer.save(sink)
        sink.seek(0)
        loaded, read = ConnectedLayer.load(sink, config)

        assert written == read == len(sink.getvalue())
        assert loaded.function == 'tanh'
        assert loaded.options == layer.options
        assert (loaded.n_inputs, loaded.n_outputs, loaded.max_outputs) == (3, 2, 6)
        assert loaded.eta == layer.eta
        np.testing.assert_array_equal(loaded.weights, layer.weights)
        np.testing.assert_array_equal(loaded.weight_active, layer.weight_active)
        np.testing.assert_array_equal(loaded.biases, layer.biases)
        np.testing.assert_array_equal(loaded.mu, layer.mu)
        np.testing.assert_array_equal(loaded.output, np.zeros(2))

    def test_loaded_layer_computes_same_output(self, linear_layer, config):
        sink = io.BytesIO()
        linear_layer.save(sink)
        sink.seek(0)
        loaded, _ = ConnectedLayer.load(sink, config)

        x = np.array([0.2, -0.4])
        linear_layer.forward(x)
        loaded.forward(x)
        np.testing.assert_array_equal(loaded.output, linear_layer.output)

    def test_truncated_stream_raises(self, linear_layer, config):
        sink = io.BytesIO()
        linear_layer.save(sink)
        data = sink.getvalue()[:-3]
        with pytest.raises(ValueError, match="truncated"):
            ConnectedLayer.load(io.BytesIO(data), config)

    def test_wrong_mutation_rate_count_raises(self, linear_layer, config):
        sink = io.BytesIO()
        linear_layer.save(sink)
        data = bytearray(sink.getvalue())
        # rate count follows six ints and five floats
        offset = 6 * INT_SIZE + 5 * FLOAT_SIZE
        data[offset:offset + INT_SIZE] = (3).to_bytes(INT_SIZE, 'little')
        with pytest.raises(ValueError, match="mutation rates"):
            ConnectedLayer.load(io.BytesIO(bytes(data)), config)

    def test_describe(self, linear_layer):
        text = linear_layer.describe()
        assert 'connected' in text
        assert 'LIN' in text
        assert 'weights' in linear_layer.describe(print_weights=True)
        assert str(linear_layer) == text
