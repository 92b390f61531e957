"""
Layer capabilities the U-Net builders rely on.
"""
from abc import ABC, abstractmethod
from typing import Sequence, Tuple


class Backend(ABC):
    """
    A tensor framework seen through the handful of layers a U-Net needs.

    Every method registers a layer in the graph being built and returns a
    symbolic handle; nothing is computed. Shape errors must be raised here,
    at construction time.
    """

    @abstractmethod
    def input(self, shape: Tuple[int, int, int]):
        """Declare a (height, width, channels) input."""

    @abstractmethod
    def conv(self, x, filters: int, kernel_size: Tuple[int, int], activation: str = "linear",
             kernel_initializer: str = "glorot_uniform", padding: str = "same"):
        """Stride-1 2D convolution."""

    @abstractmethod
    def conv_transpose(self, x, filters: int, kernel_size: Tuple[int, int] = (2, 2),
                       strides: Tuple[int, int] = (2, 2), padding: str = "same"):
        """Learned upsampling."""

    @abstractmethod
    def max_pool(self, x, pool_size: Tuple[int, int] = (2, 2), strides: Tuple[int, int] = (2, 2)):
        pass

    @abstractmethod
    def batch_norm(self, x):
        pass

    @abstractmethod
    def dropout(self, x, rate: float):
        pass

    @abstractmethod
    def concat(self, tensors: Sequence):
        """Join along the channel axis; spatial sizes must agree."""

    @abstractmethod
    def bind_model(self, inputs, outputs, name: str = "model", config=None):
        """Turn an input handle and an output handle into a trainable model.

        `config` is the record the graph was built from; checkpoints need it.
        """
