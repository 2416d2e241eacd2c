"""
Network Builder Module

Assembles the standard prediction network described by a configuration.

Functions:
    build_network: Create a Network from a Config
"""

import logging
from typing import TYPE_CHECKING

from lcsnet.layers          import ConnectedLayer, DropoutLayer, NoiseLayer, SoftmaxLayer
from lcsnet.network.network import Network
from lcsnet.utils           import rand_init

if TYPE_CHECKING:
    from lcsnet.run.config import Config

logger = logging.getLogger(__name__)

def build_network(config: 'Config') -> Network:
    """
    Build a network from the configuration:

      - 'num_hidden_layers' connected hidden layers of 'n_init' units (growing
        up to 'n_max' when neurons evolve), each followed by a noise layer when
        'noise_probability' > 0 and a dropout layer when 'dropout_probability' > 0
      - a connected output layer of 'num_outputs' units (never grows)
      - a softmax layer when 'use_softmax' is set

    The random number generators are seeded first when 'random_seed' is set.

    Parameters:
        config: Stores configuration parameters

    Returns:
        The new network
    """
    if config.random_seed is not None:
        rand_init(config.random_seed)
    network = Network(config)
    hidden_options = config.layer_options()
    output_options = config.layer_options(evolve_neurons=False)

    # Layers are inserted at the input end, so build from the output backwards
    stack = []
    n_inputs = config.num_inputs
    for _ in range(config.num_hidden_layers):
        n_max = max(config.n_max, config.n_init) if config.evolve_neurons else config.n_init
        hidden = ConnectedLayer(config, n_inputs, config.n_init, n_max,
                                function=config.hidden_activation, options=hidden_options)
        stack.append(hidden)
        if config.noise_probability > 0:
            stack.append(NoiseLayer(config, hidden.n_outputs, config.noise_probability, config.noise_stdev))
        if config.dropout_probability > 0:
            stack.append(DropoutLayer(config, hidden.n_outputs, config.dropout_probability))
        n_inputs = hidden.n_outputs

    stack.append(ConnectedLayer(config, n_inputs, config.num_outputs,
                                function=config.output_activation, options=output_options))
    if config.use_softmax:
        stack.append(SoftmaxLayer(config, config.num_outputs, config.softmax_temperature))

    for position, layer in enumerate(reversed(stack)):
        network.insert(layer, position)

    logger.debug("built network: %d layers, %d inputs, %d outputs",
                 network.n_layers, network.n_inputs, network.n_outputs)
    return network
