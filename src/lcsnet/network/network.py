"""
Network Module

This module implements the Network class: an ordered, mutable pipeline of
layers trained online by backpropagation and altered by mutation.

Classes:
    Network: Multi-layer neural network built from Layer objects
"""

import io
import logging
import numpy as np
from typing import BinaryIO, Iterator, TYPE_CHECKING
import graphviz  # type: ignore

from lcsnet                      import codec
from lcsnet.layers.layer_base    import Layer, LayerType
from lcsnet.layers.layer_factory import save_layer, load_layer

if TYPE_CHECKING:
    from lcsnet.run.config import Config

logger = logging.getLogger(__name__)

class Network:
    """
    A neural network made of an ordered sequence of layers.

    Layers are stored in data-flow order, from the input end to the output
    end, and can be walked in either direction with 'iter_forward()' (input to
    output) and 'iter_backward()' (output to input). Positions passed to
    'insert()' and 'remove()' are counted from the output end: position 0 is
    the output layer.

    The network owns its layers; no layer is ever shared between networks.
    Adjacent layers must agree on their widths (the outputs of a layer are the
    inputs of the next one). Mutation may break this temporarily; 'mutate()'
    repairs what it breaks and 'resize()' repairs any remaining mismatch.
    'propagate()' and 'learn()' refuse to run on an inconsistent network.

    Public Properties:
        n_layers:  Number of layers
        n_inputs:  Number of network inputs (inputs of the first layer)
        n_outputs: Number of network outputs (outputs of the last layer)
        output:    Output buffer of the last layer
        layers:    The layers, input end first

    Public Methods:
        insert(layer, position): Insert a layer
        remove(position):        Remove a layer
        copy():                  Deep copy the network
        propagate(input):        Forward pass
        learn(truth, input):     Backpropagation and gradient update
        mutate():                Mutate every layer, resizing as needed
        resize():                Reconcile the widths of adjacent layers
        rand():                  Re-randomise every layer
        size():                  Number of hidden units
        get_output(index):       A single network output
        save(sink), load(source): Binary persistence
    """

    def __init__(self, config: 'Config'):
        """
        Initialize an empty network.

        Parameters:
            config: Stores configuration parameters (shared with the layers)
        """
        self._config: 'Config'    = config
        self._layers: list[Layer] = []   # input end first

    @property
    def n_layers(self) -> int:
        return len(self._layers)

    @property
    def n_inputs(self) -> int:
        return self._layers[0].n_inputs if self._layers else 0

    @property
    def n_outputs(self) -> int:
        return self._layers[-1].n_outputs if self._layers else 0

    @property
    def output(self) -> np.ndarray | None:
        return self._layers[-1].output if self._layers else None

    @property
    def layers(self) -> tuple[Layer, ...]:
        return tuple(self._layers)

    def iter_forward(self) -> Iterator[Layer]:
        """Iterate over the layers from the input end to the output end."""
        return iter(self._layers)

    def iter_backward(self) -> Iterator[Layer]:
        """Iterate over the layers from the output end to the input end."""
        return reversed(self._layers)

    def __len__(self):
        return len(self._layers)

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def insert(self, layer: Layer, position: int) -> None:
        """
        Insert a layer.

        The layer ends up at 'position' counted from the output end (0 makes it
        the new output layer); positions beyond the input end make it the new
        input layer. Widths are not checked against the neighbours.

        Parameters:
            layer:    The layer to insert (the network takes ownership)
            position: Position counted from the output end
        """
        if position < 0:
            raise IndexError(f"invalid layer position {position}")
        n = len(self._layers)
        position = min(position, n)
        self._layers.insert(n - position, layer)
        logger.debug("inserted %s layer at position %d", layer.layer_type.name.lower(), position)

    def remove(self, position: int) -> None:
        """
        Remove a layer.

        Parameters:
            position: Position counted from the output end
        """
        n = len(self._layers)
        if position < 0 or position >= n:
            raise IndexError(f"no layer at position {position} (network has {n} layers)")
        if n == 1:
            raise RuntimeError("attempted to remove the only layer")
        layer = self._layers.pop(n - 1 - position)
        logger.debug("removed %s layer at position %d", layer.layer_type.name.lower(), position)

    def copy(self) -> 'Network':
        """
        Create a deep copy of the network; every layer is copied.
        """
        network = Network(self._config)
        for position, layer in enumerate(self.iter_backward()):
            network.insert(layer.copy(), position)
        return network

    def is_consistent(self) -> bool:
        """
        Whether the outputs of every layer match the inputs of the next one.
        """
        return all(prev.n_outputs == layer.n_inputs
                   for prev, layer in zip(self._layers, self._layers[1:]))

    def _check_ready(self) -> None:
        if not self._layers:
            raise RuntimeError("the network has no layers")
        if not self.is_consistent():
            raise RuntimeError("the network has mismatched layer widths; call resize()")

    # ------------------------------------------------------------------
    # Propagation
    # ------------------------------------------------------------------

    def propagate(self, input) -> np.ndarray:
        """
        Forward propagate an input through every layer.

        Parameters:
            input: Network input (length 'n_inputs')

        Returns:
            The output buffer of the last layer
        """
        self._check_ready()
        x = np.asarray(input, dtype=np.float64)
        if x.shape != (self.n_inputs,):
            raise ValueError(f"expected {self.n_inputs} inputs, got shape {x.shape}")
        for layer in self.iter_forward():
            layer.forward(x)
            x = layer.output
        return self.output

    def learn(self, truth, input) -> None:
        """
        Backpropagate the error between 'truth' and the current output and
        update every layer. Requires a preceding 'propagate(input)'.

        The error of the output layer is the residual (truth - output).

        Parameters:
            truth: Desired network output (length 'n_outputs')
            input: The input given to the preceding 'propagate()'
        """
        self._check_ready()
        y = np.asarray(truth, dtype=np.float64)
        if y.shape != (self.n_outputs,):
            raise ValueError(f"expected {self.n_outputs} truth values, got shape {y.shape}")
        x = np.asarray(input, dtype=np.float64)
        if x.shape != (self.n_inputs,):
            raise ValueError(f"expected {self.n_inputs} inputs, got shape {x.shape}")

        for layer in self._layers:
            layer.delta[:] = 0.0

        head = self._layers[-1]
        head.delta[:] = y - head.output

        # Backward phase: output end to input end
        for i in range(len(self._layers) - 1, -1, -1):
            layer = self._layers[i]
            if i == 0:
                layer.backward(x, None)
            else:
                prev = self._layers[i - 1]
                layer.backward(prev.output, prev.delta)

        # Update phase: input end to output end
        for layer in self.iter_forward():
            layer.update()

    # ------------------------------------------------------------------
    # Evolution
    # ------------------------------------------------------------------

    def mutate(self) -> bool:
        """
        Mutate every layer, from the input end to the output end. When a layer
        changes its number of outputs, the next layer is resized before it is
        itself mutated.

        Returns:
            Whether any layer changed
        """
        mod = False
        prev = None
        do_resize = False
        for layer in self.iter_forward():
            if do_resize:
                layer.resize(prev)
            do_resize = False
            orig_outputs = layer.n_outputs
            if layer.mutate():
                mod = True
                if layer.n_outputs != orig_outputs:
                    do_resize = True
            prev = layer
        return mod

    def resize(self) -> None:
        """
        Resize every layer whose inputs do not match the outputs of the layer
        feeding it, walking from the input end to the output end.
        """
        prev = None
        for layer in self.iter_forward():
            if prev is not None and layer.n_inputs != prev.n_outputs:
                logger.debug("resizing %s layer: %d -> %d inputs",
                             layer.layer_type.name.lower(), layer.n_inputs, prev.n_outputs)
                layer.resize(prev)
            prev = layer

    def rand(self) -> None:
        for layer in self.iter_forward():
            layer.rand()

    def size(self) -> int:
        """
        Returns the number of units in the weight-bearing layers (connected,
        recurrent), excluding the output-end layer. When a softmax closes the
        network, the connected layer feeding it is counted.
        """
        return sum(layer.n_outputs for layer in self._layers[:-1]
                   if layer.layer_type in (LayerType.CONNECTED, LayerType.RECURRENT))

    def get_output(self, index: int) -> float:
        """
        Returns the value of a single output of the last layer.
        """
        if index < 0 or index >= self.n_outputs:
            raise IndexError(f"requested output ({index}) in output layer of size ({self.n_outputs})")
        return float(self._layers[-1].output[index])

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, sink: BinaryIO) -> int:
        """
        Write the network: a header (number of layers, inputs and outputs)
        followed by every layer, output end first.

        Parameters:
            sink: Binary file-like object

        Returns:
            The number of bytes written
        """
        s  = codec.write_int(sink, self.n_layers)
        s += codec.write_int(sink, self.n_inputs)
        s += codec.write_int(sink, self.n_outputs)
        for layer in self.iter_backward():
            s += save_layer(layer, sink)
        logger.debug("saved network with %d layers (%d bytes)", self.n_layers, s)
        return s

    def load(self, source: BinaryIO) -> int:
        """
        Replace this network's layers with a network written by 'save()'.

        Parameters:
            source: Binary file-like object

        Returns:
            The number of bytes read
        """
        n_layers  = codec.read_int(source)
        n_inputs  = codec.read_int(source)
        n_outputs = codec.read_int(source)
        s = 3 * codec.INT_SIZE
        if n_layers < 0:
            raise ValueError(f"corrupt stream: {n_layers} layers")

        # a bad stream leaves the current layers in place
        loaded = Network(self._config)
        for position in range(n_layers):
            layer, nbytes = load_layer(source, self._config)
            loaded.insert(layer, position)
            s += nbytes

        if (loaded.n_inputs, loaded.n_outputs) != (n_inputs, n_outputs):
            raise ValueError(f"corrupt stream: header declares {n_inputs} inputs and {n_outputs} outputs, "
                             f"layers provide {loaded.n_inputs} and {loaded.n_outputs}")
        self._layers = loaded._layers
        logger.debug("loaded network with %d layers (%d bytes)", n_layers, s)
        return s

    def to_bytes(self) -> bytes:
        sink = io.BytesIO()
        self.save(sink)
        return sink.getvalue()

    @classmethod
    def from_bytes(cls, data: bytes, config: 'Config') -> 'Network':
        network = cls(config)
        network.load(io.BytesIO(data))
        return network

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def print_network(self, print_weights: bool = False) -> None:
        """
        Print every layer, input end first.
        """
        for i, layer in enumerate(self.iter_forward()):
            print(f"layer ({i}) {layer.describe(print_weights)}")

    def __str__(self):
        return "\n".join(f"layer ({i}) {layer}" for i, layer in enumerate(self.iter_forward()))

    def visualize(self, view: bool = True) -> graphviz.Digraph:
        """
        Visualize the layer pipeline using Graphviz.

        Parameters:
            view: If True, automatically open the visualization after rendering

        Returns:
            graphviz.Digraph object representing the network
        """
        dot = graphviz.Digraph()
        dot.attr(rankdir='LR')  # Left to right layout
        dot.attr('graph', labelloc='t')

        io_attrs    = {'fillcolor': 'lightgrey', 'color': 'black', 'style': 'filled', 'shape': 'circle',
                       'penwidth': '0.5', 'fontsize': '8'}
        layer_attrs = {'fillcolor': 'lightblue', 'color': 'black', 'style': 'filled', 'shape': 'box',
                       'penwidth': '0.5', 'fontsize': '8'}

        dot.node('input', label=f"in\\n{self.n_inputs}", **io_attrs)
        prev = 'input'
        for i, layer in enumerate(self.iter_forward()):
            name = f"layer{i}"
            dot.node(name, label=layer.describe().replace(', ', '\\n'), **layer_attrs)
            dot.edge(prev, name, label=str(layer.n_inputs), fontsize='6', penwidth='0.5', arrowsize='0.5')
            prev = name
        dot.node('output', label=f"out\\n{self.n_outputs}", **io_attrs)
        dot.edge(prev, 'output', label=str(self.n_outputs), fontsize='6', penwidth='0.5', arrowsize='0.5')

        if view:
            dot.view(cleanup=True)

        return dot
