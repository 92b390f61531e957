"""
Errors raised while building a U-Net.
"""


class UNetError(Exception):
    """Base class for model construction errors."""


class ConfigurationError(UNetError, ValueError):
    """Invalid shape, count, rate or identifier in a model configuration."""


class ShapeMismatchError(UNetError, ValueError):
    """Tensors that cannot be combined, detected while building the graph."""
