"""
Activations Package

This package provides the elementwise transfer functions shared by the layer
implementations, together with their derivatives.

Exported:
    activations:      Dictionary mapping activation function names to functions
    gradients:        Dictionary mapping activation function names to derivatives
    activation_ids:   Dictionary mapping names to the integer codes used on disk
    activation_names: Dictionary mapping the integer codes back to names
    activation_codes: Dictionary mapping names to 3-letter display codes
    activate:         Apply an activation function by name
    gradient:         Evaluate an activation derivative by name
"""

from lcsnet.activations.basic_activations import (
    activations,
    gradients,
    activation_ids,
    activation_names,
    activation_codes,
    activate,
    gradient,
    logistic_activation,
    relu_activation,
    tanh_activation,
    linear_activation,
    gaussian_activation,
    sin_activation,
    cos_activation,
    softplus_activation,
    leaky_activation,
    selu_activation,
    loggy_activation
)

__all__ = [
    'activations',
    'gradients',
    'activation_ids',
    'activation_names',
    'activation_codes',
    'activate',
    'gradient',
    'logistic_activation',
    'relu_activation',
    'tanh_activation',
    'linear_activation',
    'gaussian_activation',
    'sin_activation',
    'cos_activation',
    'softplus_activation',
    'leaky_activation',
    'selu_activation',
    'loggy_activation'
]
