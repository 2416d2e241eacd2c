import autograd.numpy as np  # type: ignore
from autograd import elementwise_grad  # type: ignore

def logistic_activation(z):
    z = np.clip(z, -100, 100)   # to prevent under/overflow when calculating exp
    return 1.0 / (1.0 + np.exp(-z))

def relu_activation(z):
    return np.maximum(0.0, z)

def tanh_activation(z):
    return np.tanh(z)

def linear_activation(z):
    return z

def gaussian_activation(z):
    return np.exp(-z * z)

def sin_activation(z):
    return np.sin(z)

def cos_activation(z):
    return np.cos(z)

def softplus_activation(z):
    # Clip input to avoid overflow (exp(100) ≈ 2.7e43)
    z_clipped = np.clip(z, -100, 100)
    return np.log1p(np.exp(z_clipped))

def leaky_activation(z):
    return np.where(z > 0, z, 0.1 * z)

def selu_activation(z):
    alpha = 1.6732632423543772
    scale = 1.0507009873554805
    z_clipped = np.clip(z, -100, 100)
    return scale * np.where(z_clipped > 0, z_clipped, alpha * (np.exp(z_clipped) - 1.0))

def loggy_activation(z):
    # logistic rescaled to (-1, 1)
    z = np.clip(z, -100, 100)
    return 2.0 / (1.0 + np.exp(-z)) - 1.0

activations = {
    "logistic": logistic_activation,
    "relu"    : relu_activation,
    "tanh"    : tanh_activation,
    "linear"  : linear_activation,
    "gaussian": gaussian_activation,
    "sin"     : sin_activation,
    "cos"     : cos_activation,
    "softplus": softplus_activation,
    "leaky"   : leaky_activation,
    "selu"    : selu_activation,
    "loggy"   : loggy_activation
    }

# Derivatives with respect to the (pre-activation) state
gradients = {name: elementwise_grad(f) for name, f in activations.items()}

# Integer identifiers used when saving layers; never renumber
activation_ids = {
    "logistic": 0,
    "relu"    : 1,
    "tanh"    : 2,
    "linear"  : 3,
    "gaussian": 4,
    "sin"     : 5,
    "cos"     : 6,
    "softplus": 7,
    "leaky"   : 8,
    "selu"    : 9,
    "loggy"   : 10
    }
activation_names = {code: name for name, code in activation_ids.items()}

# 3-letter identifiers for each activation function
activation_codes = {
    "logistic": "LOG",
    "relu"    : "RLU",
    "tanh"    : "TNH",
    "linear"  : "LIN",
    "gaussian": "GAU",
    "sin"     : "SIN",
    "cos"     : "COS",
    "softplus": "SPL",
    "leaky"   : "LKY",
    "selu"    : "SLU",
    "loggy"   : "LGY"
    }

def activate(name: str, state):
    """
    Apply the named activation function to an array of states.
    """
    if name not in activations:
        raise ValueError(f"Unknown activation function '{name}'")
    return activations[name](np.asarray(state, dtype=np.float64))

def gradient(name: str, state):
    """
    Evaluate the derivative of the named activation function at an array of states.
    """
    if name not in gradients:
        raise ValueError(f"Unknown activation function '{name}'")
    return gradients[name](np.asarray(state, dtype=np.float64))
