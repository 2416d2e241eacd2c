"""
Dropout Layer Module

Classes:
    DropoutLayer: Randomly zeroes units while exploring
"""

import numpy as np
from typing import BinaryIO, TYPE_CHECKING

from lcsnet                   import codec
from lcsnet.utils             import rand_uniform_array
from lcsnet.layers.layer_base import Layer, LayerType

if TYPE_CHECKING:
    from lcsnet.run.config import Config

class DropoutLayer(Layer):
    """
    A dropout layer.

    While the configuration's 'explore' flag is set, each input is dropped
    (set to zero) with probability 'probability' and the surviving inputs are
    scaled by 'scale' = 1 / (1 - probability). Otherwise the input is passed
    through unchanged. The layer has no parameters and cannot be mutated.

    Public Attributes (in addition to those of Layer):
        probability: Probability of dropping an input
        scale:       Factor applied to the surviving inputs
        mask:        Per-unit factor applied on the last forward pass
    """

    layer_type = LayerType.DROPOUT

    def __init__(self, config: 'Config', n_inputs: int, probability: float):
        """
        Parameters:
            config:      Stores configuration parameters
            n_inputs:    Number of inputs (and outputs)
            probability: Probability of dropping an input, in [0, 1)
        """
        super().__init__(config)
        if not 0.0 <= probability < 1.0:
            raise ValueError(f"invalid dropout probability: {probability}")
        self.n_inputs    = n_inputs
        self.n_outputs   = n_inputs
        self.max_outputs = n_inputs
        self.probability = probability
        self.scale       = 1.0 / (1.0 - probability)
        self._allocate()

    def _allocate(self) -> None:
        super()._allocate()
        self.mask = np.ones(self.n_outputs)

    def forward(self, input: np.ndarray) -> None:
        x = np.asarray(input, dtype=np.float64)
        if not self._config.explore:
            self.mask[:] = 1.0
        else:
            dropped = rand_uniform_array(self.n_inputs) < self.probability
            self.mask[:] = np.where(dropped, 0.0, self.scale)
        self.output[:] = x * self.mask

    def backward(self, input: np.ndarray, delta: np.ndarray | None) -> None:
        if delta is not None:
            delta += self.delta * self.mask

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
        if not 0.0 <= self.probability < 1.0:
            raise ValueError(f"corrupt stream: dropout probability {self.probability}")
        self._allocate()
        return 3 * codec.INT_SIZE + 2 * codec.FLOAT_SIZE

    def describe(self, print_weights: bool = False) -> str:
        return f"dropout in={self.n_inputs}, out={self.n_outputs}, prob={self.probability:.4f}"
