"""
Noise Layer Module

Classes:
    NoiseLayer: Adds Gaussian noise to units while exploring
"""

import numpy as np
from typing import BinaryIO, TYPE_CHECKING

from lcsnet                   import codec
from lcsnet.utils             import rand_normal_array, rand_uniform_array
from lcsnet.layers.layer_base import Layer, LayerType

if TYPE_CHECKING:
    from lcsnet.run.config import Config

class NoiseLayer(Layer):
    """
    A Gaussian noise layer.

    While the configuration's 'explore' flag is set, each input is perturbed
    with probability 'probability' by adding a draw from N(0, scale).
    Otherwise the input is passed through unchanged.
    """

    layer_type = LayerType.NOISE

    def __init__(self, config: 'Config', n_inputs: int, probability: float, scale: float):
        """
        Parameters:
            config:      Stores configuration parameters
            n_inputs:    Number of inputs (and outputs)
            probability: Probability of perturbing an input, in [0, 1]
            scale:       Standard deviation of the perturbation
        """
        super().__init__(config)
        if not 0.0 <= probability <= 1.0:
            raise ValueError(f"invalid noise probability: {probability}")
        if scale < 0:
            raise ValueError(f"invalid noise scale: {scale}")
        self.n_inputs    = n_inputs
        self.n_outputs   = n_inputs
        self.max_outputs = n_inputs
        self.probability = probability
        self.scale       = scale
        self._allocate()

    def forward(self, input: np.ndarray) -> None:
        x = np.asarray(input, dtype=np.float64)
        if not self._config.explore:
            self.output[:] = x
            return
        perturbed = rand_uniform_array(self.n_inputs) < self.probability
        noise = rand_normal_array(self.n_inputs, 0.0, self.scale)
        self.output[:] = np.where(perturbed, x + noise, x)

    def backward(self, input: np.ndarray, delta: np.ndarray | None) -> None:
        if delta is not None:
            delta += self.delta

    def resize(self, prev: Layer) -> None:
        self.n_inputs    = prev.n_outputs
        self.n_outputs   = prev.n_outputs
        self.max_outputs = prev.n_outputs
        self._allocate()

    def _save_payload(self, sink: BinaryIO) -> int:
        s  = codec.write_int(sink, self.n_inputs)
        s += codec.write_int(sink, self.n_outputs)
        s += codec.write_int(sink, self.max_outputs)
        s += codec.write_float(sink, self.probability)
        s += codec.write_float(sink, self.scale)
        return s

    def _load_payload(self, source: BinaryIO) -> int:
        self.n_inputs    = codec.read_int(source)
        self.n_outputs   = codec.read_int(source)
        self.max_outputs = codec.read_int(source)
        self.probability = codec.read_float(source)
        self.scale       = codec.read_float(source)
        self._allocate()
        return 3 * codec.INT_SIZE + 2 * codec.FLOAT_SIZE

    def describe(self, print_weights: bool = False) -> str:
        return (f"noise in={self.n_inputs}, out={self.n_outputs}, "
                f"prob={self.probability:.4f}, stdev={self.scale:.4f}")
