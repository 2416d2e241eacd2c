"""
Layer Base Module

This module defines the abstract base class shared by every layer kind, the
tags identifying each kind on disk, and the size limits and mutation-rate
helpers used by the concrete layers.

Classes:
    LayerType: Enumeration of the layer kinds (values are persisted)
    Layer:     Abstract base class defining the layer interface

Functions:
    sam_adapt: Self-adapt a vector of mutation rates
"""

import copy
import math
import numpy as np
from abc    import ABC, abstractmethod
from enum   import IntEnum
from typing import BinaryIO, TYPE_CHECKING

from lcsnet.utils import clamp, rand_normal

if TYPE_CHECKING:
    from lcsnet.run.config import Config

# Limits on the geometry of a layer
N_INPUTS_MAX  = 2000000
N_OUTPUTS_MAX = 20000

# Limits on the parameters of weight-bearing layers
WEIGHT_MIN = -10.0
WEIGHT_MAX =  10.0
NEURON_MIN = -100.0
NEURON_MAX =  100.0

# Limits on self-adaptive mutation rates
MU_MIN = 0.0001
MU_MAX = 1.0

class LayerType(IntEnum):
    """
    The kinds of layer. The values identify a layer's kind in saved networks.
    """
    CONNECTED = 0
    DROPOUT   = 1
    NOISE     = 2
    SOFTMAX   = 3
    RECURRENT = 4
    MAXPOOL   = 6
    AVGPOOL   = 8

def sam_adapt(mu: np.ndarray) -> None:
    """
    Self-adapt mutation rates in place (log-normal scheme).

    Parameters:
        mu: Mutation rates, each kept within [MU_MIN, MU_MAX]
    """
    for i in range(len(mu)):
        mu[i] = clamp(mu[i] * math.exp(rand_normal(0, 1)), MU_MIN, MU_MAX)

class Layer(ABC):
    """
    Abstract base class for the layers of a neural network.

    A layer is one stage of a feed-forward pipeline. It owns its 'output' buffer
    (the result of the last forward pass) and its 'delta' buffer (the error
    gradient with respect to its output), both always of length 'n_outputs'.
    A layer never references its neighbours: the Network passes each layer the
    input it receives and the delta buffer of the layer feeding it.

    Public Attributes:
        n_inputs:    Number of inputs
        n_outputs:   Number of outputs
        max_outputs: Ceiling on 'n_outputs' for growth by mutation
        output:      Output of the last forward pass
        delta:       Error gradient with respect to the output

    Public Properties:
        out_w, out_h, out_c: Output geometry seen by a following pooling layer

    Public Methods (implemented by every layer kind):
        forward(input):           Compute 'output' from 'input'
        backward(input, delta):   Accumulate the gradient w.r.t. 'input' into 'delta'
        update():                 Apply accumulated gradients to the parameters
        mutate():                 Stochastically perturb the layer
        resize(prev):             Match the input width to the preceding layer
        copy():                   Deep copy the layer
        rand():                   Re-randomise the parameters
        save(sink):               Write the layer's fields
        load(source, config):     Read a layer written by 'save()'
    """

    layer_type: LayerType

    def __init__(self, config: 'Config'):
        """
        Parameters:
            config: Stores configuration parameters (read at forward and update time)
        """
        self._config    : 'Config'   = config
        self.n_inputs   : int        = 0
        self.n_outputs  : int        = 0
        self.max_outputs: int        = 0
        self.output     : np.ndarray = np.zeros(0)
        self.delta      : np.ndarray = np.zeros(0)

    @property
    def out_w(self) -> int:
        return self.n_outputs

    @property
    def out_h(self) -> int:
        return 1

    @property
    def out_c(self) -> int:
        return 1

    @staticmethod
    def _check_size(n: int, n_max: int, what: str) -> None:
        if n < 1 or n > n_max:
            raise ValueError(f"invalid {what}: {n} (must be in [1, {n_max}])")

    def _allocate(self) -> None:
        """
        Validate the geometry and (re)allocate the output and delta buffers.
        New buffers are zero-filled.
        """
        self._check_size(self.n_inputs , N_INPUTS_MAX , "number of inputs")
        self._check_size(self.n_outputs, N_OUTPUTS_MAX, "number of outputs")
        self.output = np.zeros(self.n_outputs)
        self.delta  = np.zeros(self.n_outputs)

    @abstractmethod
    def forward(self, input: np.ndarray) -> None:
        """
        Forward propagate an input, writing 'output' in place.

        Parameters:
            input: The input to the layer (length 'n_inputs')
        """
        pass

    @abstractmethod
    def backward(self, input: np.ndarray, delta: np.ndarray | None) -> None:
        """
        Backward propagate the error.

        Requires 'output' and 'delta' of this layer to be populated.
        The gradient with respect to 'input' is added to 'delta'.

        Parameters:
            input: The input the layer received on the forward pass
            delta: The preceding layer's delta buffer, or None if there is none
        """
        pass

    def update(self) -> None:
        """
        Apply the accumulated gradients. Layers without parameters do nothing.
        """
        pass

    def mutate(self) -> bool:
        """
        Stochastically mutate the layer. Layers without parameters never change.

        Returns:
            Whether the layer was altered
        """
        return False

    def rand(self) -> None:
        """
        Re-randomise the parameters. Layers without parameters do nothing.
        """
        pass

    @abstractmethod
    def resize(self, prev: 'Layer') -> None:
        """
        Resize the layer to accept the output of the preceding layer.

        Parameters:
            prev: The layer feeding this one
        """
        pass

    def copy(self) -> 'Layer':
        """
        Create a deep copy of this layer. No buffer is shared with the
        original; the configuration object is shared.
        """
        return copy.deepcopy(self, memo={id(self._config): self._config})

    def get_output(self) -> np.ndarray:
        """Returns the output of the last forward pass (owned by the layer)."""
        return self.output

    def save(self, sink: BinaryIO) -> int:
        """
        Write the layer's fields (without its kind tag).

        Parameters:
            sink: Binary file-like object

        Returns:
            The number of bytes written
        """
        return self._save_payload(sink)

    @classmethod
    def load(cls, source: BinaryIO, config: 'Config') -> tuple['Layer', int]:
        """
        Read a layer written by 'save()' (without its kind tag).

        Parameters:
            source: Binary file-like object
            config: Stores configuration parameters

        Returns:
            2-tuple: (the layer, the number of bytes read)
        """
        layer = cls.__new__(cls)
        Layer.__init__(layer, config)
        nbytes = layer._load_payload(source)
        return layer, nbytes

    @abstractmethod
    def _save_payload(self, sink: BinaryIO) -> int:
        pass

    @abstractmethod
    def _load_payload(self, source: BinaryIO) -> int:
        """
        Read the fields written by '_save_payload()' and allocate the buffers.
        """
        pass

    @abstractmethod
    def describe(self, print_weights: bool = False) -> str:
        """
        One-line description of the layer (optionally followed by its parameters).
        """
        pass

    def __str__(self):
        return self.describe(False)
