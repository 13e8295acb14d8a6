"""
rackctl - control-plane client for self-hosted racks
"""

__version__ = "0.1.0"

from .core import RackController
from .errors import RackError

__all__ = ["RackController", "RackError"]
