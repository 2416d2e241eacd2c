"""
Connected Layer Module

This module implements a fully-connected layer: every output unit computes
activation(weights . input + bias). The layer is trained online by gradient
descent with momentum and decay, and can be altered by mutation: its learning
rate, number of units, connectivity, weights and activation function may all
evolve, each controlled by an option bit and a self-adaptive mutation rate.

Classes:
    ConnectedLayer: Fully-connected layer
"""

import logging
import numpy as np
from typing import BinaryIO, TYPE_CHECKING

from lcsnet             import codec
from lcsnet.activations import activations, activation_ids, activation_names, activation_codes, activate, gradient
from lcsnet.run.config  import (LAYER_EVOLVE_WEIGHTS, LAYER_EVOLVE_NEURONS, LAYER_EVOLVE_FUNCTIONS,
                                LAYER_SGD_WEIGHTS, LAYER_EVOLVE_ETA, LAYER_EVOLVE_CONNECT)
from lcsnet.utils       import clamp, irand_uniform, rand_normal, rand_uniform, rand_normal_array, rand_uniform_array
from lcsnet.layers.layer_base import (Layer, LayerType, sam_adapt, MU_MIN, MU_MAX, N_INPUTS_MAX, N_OUTPUTS_MAX,
                                      WEIGHT_MIN, WEIGHT_MAX, NEURON_MIN, NEURON_MAX)

if TYPE_CHECKING:
    from lcsnet.run.config import Config

logger = logging.getLogger(__name__)

class ConnectedLayer(Layer):
    """
    A fully-connected layer.

    The pre-activation 'state' is clamped to [NEURON_MIN, NEURON_MAX] and the
    weights to [WEIGHT_MIN, WEIGHT_MAX]. A connection can be switched off by
    mutation (when LAYER_EVOLVE_CONNECT is set); inactive weights stay zero.

    Mutation rates 'mu' (one per mutation operator) self-adapt each time the
    layer is mutated:
        mu[0]: learning rate
        mu[1]: number of units
        mu[2]: connectivity
        mu[3]: weights and biases
        mu[4]: activation function

    Public Attributes (in addition to those of Layer):
        weights:         Weight matrix, shape (n_outputs, n_inputs)
        weight_active:   Mask of enabled connections, same shape as 'weights'
        biases:          Bias vector
        state:           Pre-activation values of the last forward pass
        weight_updates:  Accumulated (momentum) weight gradients
        bias_updates:    Accumulated (momentum) bias gradients
        function:        Name of the activation function
        options:         Bitwise OR of LAYER_* flags
        eta:             Learning rate
        eta_min:         Smallest learning rate reachable by mutation
        eta_max:         Largest learning rate reachable by mutation
        momentum:        Momentum coefficient
        decay:           Weight decay coefficient
        max_neuron_grow: Largest number of units one mutation may add or remove
        mu:              Self-adaptive mutation rates
    """

    layer_type = LayerType.CONNECTED
    N_MU = 5

    def __init__(self,
                 config         : 'Config',
                 n_inputs       : int,
                 n_init         : int,
                 n_max          : int   | None = None,
                 function       : str          = 'linear',
                 options        : int          = 0,
                 eta            : float | None = None,
                 momentum       : float | None = None,
                 decay          : float | None = None,
                 max_neuron_grow: int   | None = None):
        """
        Initialize a connected layer with random weights and zero biases.
        Parameters left as None take their value from the configuration.

        Parameters:
            config:          Stores configuration parameters
            n_inputs:        Number of inputs
            n_init:          Initial number of units
            n_max:           Maximum number of units (defaults to 'n_init')
            function:        Name of the activation function
            options:         Bitwise OR of LAYER_* flags
            eta:             (Maximum) learning rate
            momentum:        Momentum coefficient
            decay:           Weight decay coefficient
            max_neuron_grow: Largest number of units one mutation may add or remove
        """
        super().__init__(config)
        if function not in activations:
            raise ValueError(f"Unknown activation function '{function}'")
        if n_max is None:
            n_max = n_init
        if n_max < n_init:
            raise ValueError(f"invalid maximum number of outputs: {n_max} < {n_init}")

        self.n_inputs   : int = n_inputs
        self.n_outputs  : int = n_init
        self.max_outputs: int = n_max
        self.function   : str = function
        self.options    : int = options

        self.max_neuron_grow: int   = config.max_neuron_grow if max_neuron_grow is None else max_neuron_grow
        self.eta_max        : float = config.eta             if eta             is None else eta
        self.momentum       : float = config.momentum        if momentum        is None else momentum
        self.decay          : float = config.decay           if decay           is None else decay
        self.eta_min        : float = min(config.eta_min, self.eta_max)

        if options & LAYER_EVOLVE_ETA:
            self.eta = rand_uniform(self.eta_min, self.eta_max)
        else:
            self.eta = self.eta_max

        self.mu = np.array([rand_uniform(MU_MIN, MU_MAX) for _ in range(self.N_MU)])

        # Validate before allocating the weight matrix
        self._check_geometry()
        shape = (self.n_outputs, self.n_inputs)
        self.weights        = self._random_weights(shape)
        self.weight_active  = np.ones(shape, dtype=bool)
        self.biases         = np.zeros(self.n_outputs)
        self.weight_updates = np.zeros(shape)
        self.bias_updates   = np.zeros(self.n_outputs)
        self._allocate()

    def _check_geometry(self) -> None:
        self._check_size(self.n_inputs   , N_INPUTS_MAX , "number of inputs")
        self._check_size(self.n_outputs  , N_OUTPUTS_MAX, "number of outputs")
        self._check_size(self.max_outputs, N_OUTPUTS_MAX, "maximum number of outputs")

    def _allocate(self) -> None:
        super()._allocate()
        self.state = np.zeros(self.n_outputs)

    def _random_weights(self, shape) -> np.ndarray:
        return np.clip(rand_normal_array(shape, 0.0, self._config.weight_init_stdev), WEIGHT_MIN, WEIGHT_MAX)

    # ------------------------------------------------------------------
    # Propagation
    # ------------------------------------------------------------------

    def forward(self, input: np.ndarray) -> None:
        x = np.asarray(input, dtype=np.float64)
        self.state[:]  = np.clip(self.weights @ x + self.biases, NEURON_MIN, NEURON_MAX)
        self.output[:] = activate(self.function, self.state)

    def backward(self, input: np.ndarray, delta: np.ndarray | None) -> None:
        self.delta *= gradient(self.function, self.state)
        if self.options & LAYER_SGD_WEIGHTS:
            x = np.asarray(input, dtype=np.float64)
            self.bias_updates   += self.delta
            self.weight_updates += np.outer(self.delta, x) * self.weight_active
        if delta is not None:
            delta += self.weights.T @ self.delta

    def update(self) -> None:
        if not (self.options & LAYER_SGD_WEIGHTS) or self.eta <= 0:
            return
        self.biases += self.eta * self.bias_updates
        self.bias_updates *= self.momentum
        if self.decay > 0:
            self.weight_updates -= self.decay * self.weights
        self.weights += self.eta * self.weight_updates
        self.weight_updates *= self.momentum
        self._clamp_weights()

    def _clamp_weights(self) -> None:
        np.clip(self.weights, WEIGHT_MIN, WEIGHT_MAX, out=self.weights)
        np.clip(self.biases , WEIGHT_MIN, WEIGHT_MAX, out=self.biases)
        self.weights[~self.weight_active] = 0.0

    # ------------------------------------------------------------------
    # Evolution
    # ------------------------------------------------------------------

    def mutate(self) -> bool:
        """
        Stochastically mutate the layer according to its option bits.

        Returns:
            Whether any property of the layer changed
        """
        sam_adapt(self.mu)
        mod = False
        if self.options & LAYER_EVOLVE_ETA and self._mutate_eta(self.mu[0]):
            mod = True
        if self.options & LAYER_EVOLVE_NEURONS:
            n = self._mutate_neurons(self.mu[1])
            if n != 0:
                self._add_neurons(n)
                mod = True
        if self.options & LAYER_EVOLVE_CONNECT and self._mutate_connectivity(self.mu[2]):
            mod = True
        if self.options & LAYER_EVOLVE_WEIGHTS and self._mutate_weights(self.mu[3]):
            mod = True
        if self.options & LAYER_EVOLVE_FUNCTIONS and self._mutate_functions(self.mu[4]):
            mod = True
        return mod

    def _mutate_eta(self, mu: float) -> bool:
        orig = self.eta
        self.eta = clamp(self.eta + rand_normal(0, mu), self.eta_min, self.eta_max)
        return self.eta != orig

    def _mutate_neurons(self, mu: float) -> int:
        """
        Returns the number of units to add (positive) or remove (negative),
        bounded so that 1 <= n_outputs <= max_outputs afterwards.
        """
        if self.max_neuron_grow < 1 or rand_uniform(0, 1) >= mu:
            return 0
        n = 0
        while n == 0:
            m = clamp(rand_normal(0, 0.5), -1.0, 1.0)
            n = int(round(m * self.max_neuron_grow))
        if self.n_outputs + n < 1:
            n = -(self.n_outputs - 1)
        elif self.n_outputs + n > self.max_outputs:
            n = self.max_outputs - self.n_outputs
        return n

    def _add_neurons(self, n: int) -> None:
        """
        Add (n > 0) or remove (n < 0) units at the end of the layer.
        """
        old = self.n_outputs
        new = old + n
        keep = min(old, new)
        shape = (new, self.n_inputs)

        weights        = self._random_weights(shape)
        weight_active  = np.ones(shape, dtype=bool)
        biases         = np.zeros(new)
        weight_updates = np.zeros(shape)
        bias_updates   = np.zeros(new)

        weights[:keep]        = self.weights[:keep]
        weight_active[:keep]  = self.weight_active[:keep]
        biases[:keep]         = self.biases[:keep]
        weight_updates[:keep] = self.weight_updates[:keep]
        bias_updates[:keep]   = self.bias_updates[:keep]

        self.weights        = weights
        self.weight_active  = weight_active
        self.biases         = biases
        self.weight_updates = weight_updates
        self.bias_updates   = bias_updates
        self.n_outputs      = new
        self._allocate()
        logger.debug("%s layer resized from %d to %d units", self.layer_type.name.lower(), old, new)

    def _mutate_connectivity(self, mu: float) -> bool:
        toggle = rand_uniform_array(self.weights.size).reshape(self.weights.shape) < mu
        if not toggle.any():
            return False
        active = self.weight_active ^ toggle

        # every unit keeps at least one input
        for row in np.flatnonzero(~active.any(axis=1)):
            active[row, irand_uniform(0, self.n_inputs)] = True

        switched_on = active & ~self.weight_active
        if switched_on.any():
            self.weights[switched_on] = self._random_weights(int(switched_on.sum()))
        self.weight_active = active
        self.weights[~active] = 0.0
        return True

    def _mutate_weights(self, mu: float) -> bool:
        self.weights += rand_normal_array(self.weights.shape, 0.0, mu)
        self.biases  += rand_normal_array(self.biases.shape , 0.0, mu)
        self._clamp_weights()
        return True

    def _mutate_functions(self, mu: float) -> bool:
        if rand_uniform(0, 1) >= mu:
            return False
        options = [name for name in activations if name != self.function]
        self.function = options[irand_uniform(0, len(options))]
        return True

    def rand(self) -> None:
        self.weights = self._random_weights(self.weights.shape)
        self.weights[~self.weight_active] = 0.0
        self.biases[:] = 0.0

    def resize(self, prev: Layer) -> None:
        """
        Match the number of inputs to the preceding layer's outputs.
        Weights of the inputs that survive are preserved; new inputs
        get random weights.
        """
        n_inputs = prev.n_outputs
        keep = min(self.n_inputs, n_inputs)
        shape = (self.n_outputs, n_inputs)

        weights        = self._random_weights(shape)
        weight_active  = np.ones(shape, dtype=bool)
        weight_updates = np.zeros(shape)

        weights[:, :keep]        = self.weights[:, :keep]
        weight_active[:, :keep]  = self.weight_active[:, :keep]
        weight_updates[:, :keep] = self.weight_updates[:, :keep]

        self.weights        = weights
        self.weight_active  = weight_active
        self.weight_updates = weight_updates
        self.n_inputs       = n_inputs
        self._allocate()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _save_payload(self, sink: BinaryIO) -> int:
        s  = codec.write_int(sink, self.n_inputs)
        s += codec.write_int(sink, self.n_outputs)
        s += codec.write_int(sink, self.max_outputs)
        s += codec.write_int(sink, self.max_neuron_grow)
        s += codec.write_int(sink, self.options)
        s += codec.write_int(sink, activation_ids[self.function])
        s += codec.write_float(sink, self.eta)
        s += codec.write_float(sink, self.eta_min)
        s += codec.write_float(sink, self.eta_max)
        s += codec.write_float(sink, self.momentum)
        s += codec.write_float(sink, self.decay)
        s += codec.write_int(sink, len(self.mu))
        s += codec.write_array(sink, self.mu)
        s += codec.write_array(sink, self.weights)
        s += codec.write_ints(sink, self.weight_active)
        s += codec.write_array(sink, self.biases)
        s += codec.write_array(sink, self.weight_updates)
        s += codec.write_array(sink, self.bias_updates)
        return s

    def _load_payload(self, source: BinaryIO) -> int:
        s = 0
        self.n_inputs        = codec.read_int(source)
        self.n_outputs       = codec.read_int(source)
        self.max_outputs     = codec.read_int(source)
        self.max_neuron_grow = codec.read_int(source)
        self.options         = codec.read_int(source)
        function_id          = codec.read_int(source)
        s += 6 * codec.INT_SIZE
        if function_id not in activation_names:
            raise ValueError(f"corrupt stream: unknown activation code {function_id}")
        self.function = activation_names[function_id]
        self.eta      = codec.read_float(source)
        self.eta_min  = codec.read_float(source)
        self.eta_max  = codec.read_float(source)
        self.momentum = codec.read_float(source)
        self.decay    = codec.read_float(source)
        s += 5 * codec.FLOAT_SIZE
        n_mu = codec.read_int(source)
        s += codec.INT_SIZE
        if n_mu != self.N_MU:
            raise ValueError(f"corrupt stream: expected {self.N_MU} mutation rates, got {n_mu}")
        self.mu = codec.read_array(source, n_mu)
        s += n_mu * codec.FLOAT_SIZE

        self._check_geometry()
        shape = (self.n_outputs, self.n_inputs)
        n_weights = self.n_outputs * self.n_inputs
        self.weights        = codec.read_array(source, n_weights).reshape(shape)
        self.weight_active  = codec.read_ints(source, n_weights).reshape(shape).astype(bool)
        self.biases         = codec.read_array(source, self.n_outputs)
        self.weight_updates = codec.read_array(source, n_weights).reshape(shape)
        self.bias_updates   = codec.read_array(source, self.n_outputs)
        s += n_weights * (2 * codec.FLOAT_SIZE + codec.INT_SIZE) + 2 * self.n_outputs * codec.FLOAT_SIZE
        self._allocate()
        return s

    def describe(self, print_weights: bool = False) -> str:
        s = (f"{self.layer_type.name.lower()} {activation_codes[self.function]}, "
             f"in={self.n_inputs}, out={self.n_outputs}, max={self.max_outputs}, eta={self.eta:.5f}")
        if print_weights:
            s += f"\nweights={np.array2string(self.weights, precision=4)}"
            s += f"\nbiases={np.array2string(self.biases, precision=4)}"
        return s
