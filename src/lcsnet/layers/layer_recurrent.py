"""
Recurrent Layer Module

This module implements a simple recurrent layer: a fully-connected layer
whose units also receive the layer's own output from the previous forward
pass through a square matrix of recurrent weights.

Classes:
    RecurrentLayer: Fully-connected layer with self-recurrent connections
"""

import numpy as np
from typing import BinaryIO, TYPE_CHECKING

from lcsnet                          import codec
from lcsnet.activations              import activate
from lcsnet.run.config               import LAYER_SGD_WEIGHTS
from lcsnet.utils                    import rand_normal_array
from lcsnet.layers.layer_base        import LayerType, WEIGHT_MIN, WEIGHT_MAX, NEURON_MIN, NEURON_MAX
from lcsnet.layers.layer_connected   import ConnectedLayer

if TYPE_CHECKING:
    from lcsnet.run.config import Config

class RecurrentLayer(ConnectedLayer):
    """
    A recurrent layer computing

        state  = weights . input + recurrent_weights . prev_output + biases
        output = activation(state)

    where 'prev_output' is the output of the previous forward pass. Gradients
    are truncated to one time step: the fed-back output is treated as a
    constant input when backpropagating.

    Public Attributes (in addition to those of ConnectedLayer):
        recurrent_weights:        Square matrix, shape (n_outputs, n_outputs)
        recurrent_weight_updates: Accumulated (momentum) recurrent gradients
        prev_output:              Output of the last forward pass, fed back on the next one
        feedback:                 The 'prev_output' used by the last forward pass
    """

    layer_type = LayerType.RECURRENT

    def __init__(self, config: 'Config', n_inputs: int, n_init: int, n_max: int | None = None,
                 function: str = 'linear', options: int = 0, **kwargs):
        """
        Parameters:
            See ConnectedLayer.
        """
        super().__init__(config, n_inputs, n_init, n_max, function, options, **kwargs)
        shape = (self.n_outputs, self.n_outputs)
        self.recurrent_weights        = self._random_weights(shape)
        self.recurrent_weight_updates = np.zeros(shape)

    def _allocate(self) -> None:
        super()._allocate()
        self.prev_output = np.zeros(self.n_outputs)
        self.feedback    = np.zeros(self.n_outputs)

    def forward(self, input: np.ndarray) -> None:
        x = np.asarray(input, dtype=np.float64)
        self.feedback[:] = self.prev_output
        state = self.weights @ x + self.recurrent_weights @ self.feedback + self.biases
        self.state[:]  = np.clip(state, NEURON_MIN, NEURON_MAX)
        self.output[:] = activate(self.function, self.state)
        self.prev_output[:] = self.output

    def backward(self, input: np.ndarray, delta: np.ndarray | None) -> None:
        super().backward(input, delta)
        if self.options & LAYER_SGD_WEIGHTS:
            self.recurrent_weight_updates += np.outer(self.delta, self.feedback)

    def update(self) -> None:
        if not (self.options & LAYER_SGD_WEIGHTS) or self.eta <= 0:
            return
        if self.decay > 0:
            self.recurrent_weight_updates -= self.decay * self.recurrent_weights
        self.recurrent_weights += self.eta * self.recurrent_weight_updates
        self.recurrent_weight_updates *= self.momentum
        super().update()

    def _clamp_weights(self) -> None:
        super()._clamp_weights()
        np.clip(self.recurrent_weights, WEIGHT_MIN, WEIGHT_MAX, out=self.recurrent_weights)

    def _add_neurons(self, n: int) -> None:
        old = self.n_outputs
        super()._add_neurons(n)
        new = self.n_outputs
        keep = min(old, new)

        recurrent_weights        = self._random_weights((new, new))
        recurrent_weight_updates = np.zeros((new, new))
        recurrent_weights[:keep, :keep]        = self.recurrent_weights[:keep, :keep]
        recurrent_weight_updates[:keep, :keep] = self.recurrent_weight_updates[:keep, :keep]
        self.recurrent_weights        = recurrent_weights
        self.recurrent_weight_updates = recurrent_weight_updates

    def _mutate_weights(self, mu: float) -> bool:
        self.recurrent_weights += rand_normal_array(self.recurrent_weights.shape, 0.0, mu)
        return super()._mutate_weights(mu)

    def rand(self) -> None:
        super().rand()
        self.recurrent_weights = self._random_weights(self.recurrent_weights.shape)

    def _save_payload(self, sink: BinaryIO) -> int:
        s  = super()._save_payload(sink)
        s += codec.write_array(sink, self.recurrent_weights)
        s += codec.write_array(sink, self.recurrent_weight_updates)
        s += codec.write_array(sink, self.prev_output)
        return s

    def _load_payload(self, source: BinaryIO) -> int:
        s = super()._load_payload(source)
        n = self.n_outputs
        self.recurrent_weights        = codec.read_array(source, n * n).reshape((n, n))
        self.recurrent_weight_updates = codec.read_array(source, n * n).reshape((n, n))
        self.prev_output              = codec.read_array(source, n)
        s += (2 * n * n + n) * codec.FLOAT_SIZE
        return s
