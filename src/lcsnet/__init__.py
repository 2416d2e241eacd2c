"""
lcsnet - Evolvable neural networks for learning classifier systems.

This package provides the neural network engine used as the condition and
prediction representation of classifiers: a layered network trained online by
gradient descent and altered by mutation (weights, units, connectivity,
activation functions and learning rates), with deep copying and binary
persistence.

Main components:
- layers: Layer kinds (connected, recurrent, dropout, noise, softmax, pooling)
- network: The layer pipeline and a builder for the standard prediction network
- activations: Activation functions and their derivatives
- run: Configuration
- codec: Binary persistence primitives

Example:
    >>> from lcsnet import Config, build_network
    >>> config = Config()
    >>> config.num_inputs = 3
    >>> net = build_network(config)
    >>> net.propagate([0.1, 0.2, 0.3])
"""

__version__ = "0.1.0"

# Import main classes for convenient access
from lcsnet.run.config import Config
from lcsnet.layers import (Layer, LayerType, ConnectedLayer, RecurrentLayer, DropoutLayer,
                           NoiseLayer, SoftmaxLayer, MaxPoolLayer, AvgPoolLayer)
from lcsnet.network import Network, build_network
from lcsnet.utils import rand_init

__all__ = [
    "Config",
    "Layer",
    "LayerType",
    "ConnectedLayer",
    "RecurrentLayer",
    "DropoutLayer",
    "NoiseLayer",
    "SoftmaxLayer",
    "MaxPoolLayer",
    "AvgPoolLayer",
    "Network",
    "build_network",
    "rand_init",
]
