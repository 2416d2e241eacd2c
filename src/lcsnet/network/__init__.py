"""
Network Package

Exported:
    Network:       Ordered, mutable pipeline of layers
    build_network: Assemble the standard prediction network from a Config
"""

from lcsnet.network.network import Network
from lcsnet.network.builder import build_network

__all__ = ['Network', 'build_network']
