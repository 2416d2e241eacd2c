"""
Layers Package

This package implements the layers from which networks are assembled. Every
layer kind implements the interface defined by the Layer base class:
forward/backward propagation, gradient update, mutation, resizing, copying
and persistence.

Modules:
    layer_base:      Layer base class, LayerType tags, size limits
    layer_connected: Fully-connected layer
    layer_recurrent: Recurrent layer
    layer_dropout:   Dropout layer
    layer_noise:     Gaussian noise layer
    layer_softmax:   Softmax layer
    layer_pool:      Max pooling and global average pooling layers
    layer_factory:   Kind tag registry, typed copy, save/load of any layer

Exported Classes:
    Layer, LayerType, ConnectedLayer, RecurrentLayer, DropoutLayer,
    NoiseLayer, SoftmaxLayer, MaxPoolLayer, AvgPoolLayer
"""

from lcsnet.layers.layer_base      import Layer, LayerType, N_INPUTS_MAX, N_OUTPUTS_MAX
from lcsnet.layers.layer_connected import ConnectedLayer
from lcsnet.layers.layer_recurrent import RecurrentLayer
from lcsnet.layers.layer_dropout   import DropoutLayer
from lcsnet.layers.layer_noise     import NoiseLayer
from lcsnet.layers.layer_softmax   import SoftmaxLayer
from lcsnet.layers.layer_pool      import MaxPoolLayer, AvgPoolLayer
from lcsnet.layers.layer_factory   import layer_classes, copy_layer, save_layer, load_layer

__all__ = ['Layer',
           'LayerType',
           'N_INPUTS_MAX',
           'N_OUTPUTS_MAX',
           'ConnectedLayer',
           'RecurrentLayer',
           'DropoutLayer',
           'NoiseLayer',
           'SoftmaxLayer',
           'MaxPoolLayer',
           'AvgPoolLayer',
           'layer_classes',
           'copy_layer',
           'save_layer',
           'load_layer']
