import configparser
import os
from lcsnet.activations import activations

# Option bits for connected and recurrent layers
LAYER_EVOLVE_WEIGHTS   = 1 << 0
LAYER_EVOLVE_NEURONS   = 1 << 1
LAYER_EVOLVE_FUNCTIONS = 1 << 2
LAYER_SGD_WEIGHTS      = 1 << 3
LAYER_EVOLVE_ETA       = 1 << 4
LAYER_EVOLVE_CONNECT   = 1 << 5

class Config:

    @staticmethod
    def _parse_activation(raw_name):
        """
        Validate an activation function name.

        Parameters:
            raw_name: Name of an activation function (see 'basic_activations.py')

        Returns:
            The stripped activation function name
        """
        name = raw_name.strip()
        if name not in activations:
            raise ValueError(f"Invalid activation function '{name}'")
        return name

    def __init__(self, config_file: str | None = None):
        """
        Initialize Config by parsing an INI file, or create a default Config.

        Parameters:
            config_file: Path to the INI configuration file.
                         If None, creates a Config holding default values,
                         which can then be changed by setting attributes.
        """

        # Default config for testing/manual setup
        if config_file is None:
            self.explore     = False
            self.num_inputs  = 1
            self.num_outputs = 1
            self.random_seed = None

            # Set defaults for layer construction
            self.hidden_activation = 'relu'
            self.output_activation = 'linear'
            self.num_hidden_layers = 1
            self.n_init            = 10
            self.n_max             = 100
            self.max_neuron_grow   = 1
            self.weight_init_stdev = 0.1

            # Set defaults for gradient descent
            self.eta      = 0.01
            self.eta_min  = 0.0001
            self.momentum = 0.9
            self.decay    = 0.0

            # Set defaults for evolution
            self.sgd_weights      = True
            self.evolve_weights   = True
            self.evolve_neurons   = False
            self.evolve_functions = False
            self.evolve_eta       = False
            self.evolve_connect   = False

            # Set defaults for the stochastic layers
            self.dropout_probability = 0.0
            self.noise_probability   = 0.0
            self.noise_stdev         = 1.0

            # Set defaults for softmax
            self.use_softmax         = False
            self.softmax_temperature = 1.0

            return

        if not os.path.exists(config_file):
            raise FileNotFoundError(f"Configuration file '{config_file}' not found")

        parser = configparser.ConfigParser()
        parser.read(config_file)

        # Sentinel for missing default values
        _NO_DEFAULT = object()

        # Helper function to safely parse values
        def get_value(section, key, value_type, default=_NO_DEFAULT):
            try:
                raw_value = parser.get(section, key)
                if raw_value.lower() == 'none':
                    return None
                if value_type == int:
                    return parser.getint(section, key)
                elif value_type == float:
                    return parser.getfloat(section, key)
                elif value_type == bool:
                    return parser.getboolean(section, key)
                elif value_type == str:
                    return raw_value
            except (configparser.NoSectionError, configparser.NoOptionError):
                if default is not _NO_DEFAULT:
                    return default
                raise

        # [GENERAL]

        # Whether the system is currently exploring (training). Stochastic
        # layers (dropout, noise) only perturb their inputs while exploring.
        self.explore = get_value('GENERAL', 'explore', bool, default=False)

        # The number of network inputs and outputs.
        self.num_inputs  = get_value('GENERAL', 'num_inputs' , int)
        self.num_outputs = get_value('GENERAL', 'num_outputs', int)

        # Seed for the random number generators ("None" leaves them unseeded).
        self.random_seed = get_value('GENERAL', 'random_seed', int, default=None)

        # [LAYER]

        # Activation functions of the hidden and output layers.
        # Options: see 'basic_activations.py'.
        self.hidden_activation = get_value('LAYER', 'hidden_activation', str, default='relu')
        self.output_activation = get_value('LAYER', 'output_activation', str, default='linear')

        # The number of hidden layers in networks assembled from this configuration.
        self.num_hidden_layers = get_value('LAYER', 'num_hidden_layers', int, default=1)

        # The initial and maximum number of units in each hidden layer.
        self.n_init = get_value('LAYER', 'n_init', int)
        self.n_max  = get_value('LAYER', 'n_max' , int)

        # The largest number of units a single mutation may add or remove.
        self.max_neuron_grow = get_value('LAYER', 'max_neuron_grow', int, default=1)

        # The standard deviation of the zero-centered normal
        # distribution used to initialize new weights.
        self.weight_init_stdev = get_value('LAYER', 'weight_init_stdev', float, default=0.1)

        # [GRADIENT_DESCENT]

        # The (maximum) learning rate, and the smallest learning
        # rate reachable when the learning rate is evolved.
        self.eta     = get_value('GRADIENT_DESCENT', 'eta'    , float)
        self.eta_min = get_value('GRADIENT_DESCENT', 'eta_min', float, default=0.0001)

        # Momentum applied to the accumulated weight updates.
        self.momentum = get_value('GRADIENT_DESCENT', 'momentum', float, default=0.9)

        # Weight decay.
        self.decay = get_value('GRADIENT_DESCENT', 'decay', float, default=0.0)

        # Whether the weights are trained by gradient descent at all.
        self.sgd_weights = get_value('GRADIENT_DESCENT', 'sgd_weights', bool, default=True)

        # [EVOLUTION]

        # Which properties of a layer mutation is allowed to change.
        self.evolve_weights   = get_value('EVOLUTION', 'evolve_weights'  , bool, default=True)
        self.evolve_neurons   = get_value('EVOLUTION', 'evolve_neurons'  , bool, default=False)
        self.evolve_functions = get_value('EVOLUTION', 'evolve_functions', bool, default=False)
        self.evolve_eta       = get_value('EVOLUTION', 'evolve_eta'      , bool, default=False)
        self.evolve_connect   = get_value('EVOLUTION', 'evolve_connect'  , bool, default=False)

        # [DROPOUT] (optional section)

        # The probability of dropping a unit; 0 means no dropout layers.
        self.dropout_probability = get_value('DROPOUT', 'dropout_probability', float, default=0.0)

        # [NOISE] (optional section)

        # The probability of perturbing a unit, and the standard deviation of
        # the perturbation; a probability of 0 means no noise layers.
        self.noise_probability = get_value('NOISE', 'noise_probability', float, default=0.0)
        self.noise_stdev       = get_value('NOISE', 'noise_stdev'      , float, default=1.0)

        # [SOFTMAX] (optional section)

        # Whether to append a softmax layer to the output, and its temperature.
        self.use_softmax         = get_value('SOFTMAX', 'use_softmax'        , bool , default=False)
        self.softmax_temperature = get_value('SOFTMAX', 'softmax_temperature', float, default=1.0)

    def layer_options(self, evolve_neurons: bool | None = None) -> int:
        """
        Collect the layer option bits selected by this configuration.

        Parameters:
            evolve_neurons: Overrides 'evolve_neurons' (output layers never grow)

        Returns:
            Bitwise OR of the LAYER_* flags
        """
        if evolve_neurons is None:
            evolve_neurons = self.evolve_neurons
        options = 0
        if self.sgd_weights:
            options |= LAYER_SGD_WEIGHTS
        if self.evolve_weights:
            options |= LAYER_EVOLVE_WEIGHTS
        if evolve_neurons:
            options |= LAYER_EVOLVE_NEURONS
        if self.evolve_functions:
            options |= LAYER_EVOLVE_FUNCTIONS
        if self.evolve_eta:
            options |= LAYER_EVOLVE_ETA
        if self.evolve_connect:
            options |= LAYER_EVOLVE_CONNECT
        return options

    def __setattr__(self, name, value):
        """
        Override 'setattr' to validate activation function names when set.
        """
        if name in ('hidden_activation', 'output_activation'):
            value = self._parse_activation(value)
        super().__setattr__(name, value)
