"""
Layer Factory Module

Maps layer kind tags to layer classes, and reads, writes and copies layers
of any kind.

Functions:
    copy_layer: Deep copy a layer, optionally checking its kind
    save_layer: Write a layer's kind tag followed by its fields
    load_layer: Read a layer written by 'save_layer()'
"""

from typing import BinaryIO, TYPE_CHECKING

from lcsnet                        import codec
from lcsnet.layers.layer_base      import Layer, LayerType
from lcsnet.layers.layer_connected import ConnectedLayer
from lcsnet.layers.layer_dropout   import DropoutLayer
from lcsnet.layers.layer_noise     import NoiseLayer
from lcsnet.layers.layer_pool      import AvgPoolLayer, MaxPoolLayer
from lcsnet.layers.layer_recurrent import RecurrentLayer
from lcsnet.layers.layer_softmax   import SoftmaxLayer

if TYPE_CHECKING:
    from lcsnet.run.config import Config

layer_classes: dict[LayerType, type[Layer]] = {
    LayerType.CONNECTED: ConnectedLayer,
    LayerType.DROPOUT  : DropoutLayer,
    LayerType.NOISE    : NoiseLayer,
    LayerType.SOFTMAX  : SoftmaxLayer,
    LayerType.RECURRENT: RecurrentLayer,
    LayerType.MAXPOOL  : MaxPoolLayer,
    LayerType.AVGPOOL  : AvgPoolLayer
    }

def copy_layer(src: Layer, layer_type: LayerType | None = None) -> Layer:
    """
    Deep copy a layer.

    Parameters:
        src:        The layer to copy
        layer_type: If given, the kind 'src' is required to be

    Returns:
        The new layer
    """
    if layer_type is not None and src.layer_type != layer_type:
        raise TypeError(f"cannot copy a {src.layer_type.name} layer as {LayerType(layer_type).name}")
    return src.copy()

def save_layer(layer: Layer, sink: BinaryIO) -> int:
    """
    Write a layer's kind tag followed by its fields.

    Returns:
        The number of bytes written
    """
    s  = codec.write_int(sink, layer.layer_type)
    s += layer.save(sink)
    return s

def load_layer(source: BinaryIO, config: 'Config') -> tuple[Layer, int]:
    """
    Read a layer written by 'save_layer()'.

    Returns:
        2-tuple: (the layer, the number of bytes read)
    """
    tag = codec.read_int(source)
    try:
        layer_class = layer_classes[LayerType(tag)]
    except ValueError:
        raise ValueError(f"corrupt stream: unknown layer type {tag}") from None
    layer, nbytes = layer_class.load(source, config)
    return layer, codec.INT_SIZE + nbytes
