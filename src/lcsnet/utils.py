"""
Random Number and Utility Module

This module provides the random draws used by stochastic forward passes
(dropout, noise) and by mutation, plus a handful of numeric helpers.
Scalar draws use Python's 'random' module, vector draws use 'numpy.random';
'rand_init()' seeds both.

Functions:
    rand_init:          Seed the random number generators
    rand_uniform:       Uniform float draw in [low, high)
    irand_uniform:      Uniform integer draw in [low, high)
    rand_normal:        Normal draw
    rand_uniform_array: Vector of uniform draws in [0, 1)
    rand_normal_array:  Array of normal draws
    clamp:              Clamp a value to a closed interval
"""

import numpy as np
import random

def rand_init(seed: int | None = None) -> None:
    """
    Seed the random number generators.

    Parameters:
        seed: Seed value; None seeds from system entropy
    """
    random.seed(seed)
    np.random.seed(seed)

def rand_uniform(low: float, high: float) -> float:
    return random.uniform(low, high)

def irand_uniform(low: int, high: int) -> int:
    """Returns a random integer n such that low <= n < high."""
    if high <= low:
        return low
    return random.randrange(low, high)

def rand_normal(mu: float, sigma: float) -> float:
    return random.gauss(mu, sigma)

def rand_uniform_array(n: int) -> np.ndarray:
    return np.random.random(n)

def rand_normal_array(shape, mu: float, sigma: float) -> np.ndarray:
    return np.random.normal(mu, sigma, shape)

def clamp(value, low, high):
    return max(low, min(high, value))
