"""
Softmax Layer Module

Classes:
    SoftmaxLayer: Normalises its input into a probability distribution
"""

import numpy as np
from typing import BinaryIO, TYPE_CHECKING

from lcsnet                   import codec
from lcsnet.layers.layer_base import Layer, LayerType

if TYPE_CHECKING:
    from lcsnet.run.config import Config

class SoftmaxLayer(Layer):
    """
    A softmax layer with temperature 'scale'.

    The error is passed back unchanged: the network seeds the output error
    with the residual (truth - output), which is already the gradient of the
    cross-entropy loss with respect to the softmax input.
    """

    layer_type = LayerType.SOFTMAX

    def __init__(self, config: 'Config', n_inputs: int, temperature: float = 1.0):
        """
        Parameters:
            config:      Stores configuration parameters
            n_inputs:    Number of inputs (and outputs)
            temperature: Softmax temperature (> 0)
        """
        super().__init__(config)
        if temperature <= 0:
            raise ValueError(f"invalid softmax temperature: {temperature}")
        self.n_inputs    = n_inputs
        self.n_outputs   = n_inputs
        self.max_outputs = n_inputs
        self.scale       = temperature
        self._allocate()

    def forward(self, input: np.ndarray) -> None:
        z = np.asarray(input, dtype=np.float64) / self.scale
        e = np.exp(z - np.max(z))
        self.output[:] = e / np.sum(e)

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
        s += codec.write_float(sink, self.scale)
        return s

    def _load_payload(self, source: BinaryIO) -> int:
        self.n_inputs    = codec.read_int(source)
        self.n_outputs   = codec.read_int(source)
        self.max_outputs = codec.read_int(source)
        self.scale       = codec.read_float(source)
        if self.scale <= 0:
            raise ValueError(f"corrupt stream: softmax temperature {self.scale}")
        self._allocate()
        return 3 * codec.INT_SIZE + codec.FLOAT_SIZE

    def describe(self, print_weights: bool = False) -> str:
        return f"softmax in={self.n_inputs}, out={self.n_outputs}, temp={self.scale:.4f}"
