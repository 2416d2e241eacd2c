"""
Pooling Layer Module

This module implements the parameter-free 2D pooling layers. Inputs are laid
out channel by channel, row by row: the value at (row h, column w, channel k)
lives at index w + width * (h + height * k). Outputs use the same layout.

Classes:
    MaxPoolLayer: 2D max pooling with a square window
    AvgPoolLayer: Global average pooling over each channel
"""

import numpy as np
from typing import BinaryIO, TYPE_CHECKING

from lcsnet                   import codec
from lcsnet.layers.layer_base import Layer, LayerType

if TYPE_CHECKING:
    from lcsnet.run.config import Config

class MaxPoolLayer(Layer):
    """
    A 2D max pooling layer.

    Each output is the largest input inside a 'size' x 'size' window; windows
    are 'stride' apart and the input is padded by 'pad' // 2 on the top and
    left. The index of the selected input is recorded for each output so the
    error can be routed back to it.

    Public Attributes (in addition to those of Layer):
        height, width, channels: Input geometry
        size:                    Pooling window size
        stride:                  Distance between windows
        pad:                     Padding
        indexes:                 Selected input index per output (-1 if none)
    """

    layer_type = LayerType.MAXPOOL

    def __init__(self, config: 'Config', height: int, width: int, channels: int,
                 size: int, stride: int, pad: int = 0):
        """
        Parameters:
            config:   Stores configuration parameters
            height:   Input height
            width:    Input width
            channels: Number of input channels
            size:     Pooling window size
            stride:   Distance between windows
            pad:      Padding
        """
        super().__init__(config)
        if size < 1 or stride < 1 or pad < 0:
            raise ValueError(f"invalid pooling window: size={size}, stride={stride}, pad={pad}")
        self.size   = size
        self.stride = stride
        self.pad    = pad
        self._set_geometry(height, width, channels)
        self.max_outputs = self.n_outputs
        self._allocate()

    @property
    def out_w(self) -> int:
        return self._out_w

    @property
    def out_h(self) -> int:
        return self._out_h

    @property
    def out_c(self) -> int:
        return self._out_c

    def _set_geometry(self, height: int, width: int, channels: int) -> None:
        self.height    = height
        self.width     = width
        self.channels  = channels
        self.n_inputs  = height * width * channels
        self._out_w    = (width  + self.pad - self.size) // self.stride + 1
        self._out_h    = (height + self.pad - self.size) // self.stride + 1
        self._out_c    = channels
        self.n_outputs = max(self._out_w, 0) * max(self._out_h, 0) * self._out_c

    def _allocate(self) -> None:
        if min(self.height, self.width, self.channels) < 1:
            raise ValueError(f"invalid pooling input: {self.height}x{self.width}x{self.channels}")
        super()._allocate()
        self.indexes = np.full(self.n_outputs, -1, dtype=np.int64)

        # Input index of every window position (-1 outside the input)
        offset = -(self.pad // 2)
        k, i, j, n, m = np.meshgrid(np.arange(self._out_c), np.arange(self._out_h), np.arange(self._out_w),
                                    np.arange(self.size), np.arange(self.size), indexing='ij')
        cur_h = offset + i * self.stride + n
        cur_w = offset + j * self.stride + m
        valid = (cur_h >= 0) & (cur_h < self.height) & (cur_w >= 0) & (cur_w < self.width)
        windows = np.where(valid, cur_w + self.width * (cur_h + self.height * k), -1)
        self._windows = windows.reshape(self.n_outputs, self.size * self.size)

    def forward(self, input: np.ndarray) -> None:
        x = np.asarray(input, dtype=np.float64)
        valid  = self._windows >= 0
        values = np.where(valid, x[np.where(valid, self._windows, 0)], -np.inf)
        best   = np.argmax(values, axis=1)
        rows   = np.arange(self.n_outputs)
        self.indexes[:] = self._windows[rows, best]
        self.output[:]  = np.where(self.indexes >= 0, x[np.maximum(self.indexes, 0)], 0.0)

    def backward(self, input: np.ndarray, delta: np.ndarray | None) -> None:
        if delta is not None:
            selected = self.indexes >= 0
            np.add.at(delta, self.indexes[selected], self.delta[selected])

    def resize(self, prev: Layer) -> None:
        self._set_geometry(prev.out_h, prev.out_w, prev.out_c)
        self.max_outputs = self.n_outputs
        self._allocate()

    def _save_payload(self, sink: BinaryIO) -> int:
        s = 0
        for value in (self.height, self.width, self.channels, self.pad,
                      self._out_w, self._out_h, self._out_c,
                      self.n_outputs, self.max_outputs, self.n_inputs,
                      self.size, self.stride):
            s += codec.write_int(sink, value)
        return s

    def _load_payload(self, source: BinaryIO) -> int:
        (self.height, self.width, self.channels, self.pad,
         self._out_w, self._out_h, self._out_c,
         self.n_outputs, self.max_outputs, self.n_inputs,
         self.size, self.stride) = (codec.read_int(source) for _ in range(12))
        if self.size < 1 or self.stride < 1 or self.pad < 0:
            raise ValueError("corrupt stream: invalid pooling window")
        if (self.n_inputs  != self.height * self.width * self.channels or
            self.n_outputs != self._out_w * self._out_h * self._out_c):
            raise ValueError("corrupt stream: inconsistent pooling geometry")
        self._allocate()
        return 12 * codec.INT_SIZE

    def describe(self, print_weights: bool = False) -> str:
        return (f"maxpool in={self.n_inputs}, out={self.n_outputs}, h={self.height}, w={self.width}, "
                f"c={self.channels}, size={self.size}, stride={self.stride}, pad={self.pad}")

class AvgPoolLayer(Layer):
    """
    A global average pooling layer: one output per channel, the mean of
    that channel's height x width inputs.
    """

    layer_type = LayerType.AVGPOOL

    def __init__(self, config: 'Config', height: int, width: int, channels: int):
        super().__init__(config)
        self._set_geometry(height, width, channels)
        self.max_outputs = self.n_outputs
        self._allocate()

    @property
    def out_w(self) -> int:
        return 1

    @property
    def out_h(self) -> int:
        return 1

    @property
    def out_c(self) -> int:
        return self.channels

    def _set_geometry(self, height: int, width: int, channels: int) -> None:
        if min(height, width, channels) < 1:
            raise ValueError(f"invalid pooling input: {height}x{width}x{channels}")
        self.height    = height
        self.width     = width
        self.channels  = channels
        self.n_inputs  = height * width * channels
        self.n_outputs = channels

    def forward(self, input: np.ndarray) -> None:
        x = np.asarray(input, dtype=np.float64)
        self.output[:] = x.reshape(self.channels, self.height * self.width).mean(axis=1)

    def backward(self, input: np.ndarray, delta: np.ndarray | None) -> None:
        if delta is not None:
            area = self.height * self.width
            delta += np.repeat(self.delta / area, area)

    def resize(self, prev: Layer) -> None:
        self._set_geometry(prev.out_h, prev.out_w, prev.out_c)
        self.max_outputs = self.n_outputs
        self._allocate()

    def _save_payload(self, sink: BinaryIO) -> int:
        s = 0
        for value in (self.height, self.width, self.channels,
                      self.out_w, self.out_h, self.out_c,
                      self.n_outputs, self.max_outputs, self.n_inputs):
            s += codec.write_int(sink, value)
        return s

    def _load_payload(self, source: BinaryIO) -> int:
        height, width, channels = (codec.read_int(source) for _ in range(3))
        out_w, out_h, out_c, n_outputs, max_outputs, n_inputs = (codec.read_int(source) for _ in range(6))
        self._set_geometry(height, width, channels)
        if (out_w, out_h, out_c, n_outputs, n_inputs) != (1, 1, channels, self.n_outputs, self.n_inputs):
            raise ValueError("corrupt stream: inconsistent pooling geometry")
        self.max_outputs = max_outputs
        self._allocate()
        return 9 * codec.INT_SIZE

    def describe(self, print_weights: bool = False) -> str:
        return (f"avgpool in={self.n_inputs}, out={self.n_outputs}, "
                f"h={self.height}, w={self.width}, c={self.channels}")
