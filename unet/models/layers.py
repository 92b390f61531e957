"""
Small layers used by the torch graph.
"""
import torch
import torch.nn as nn

from unet.errors import ConfigurationError


class Activation(nn.Module):
    """Activation chosen by name; softmax runs over the channel axis (dim 1, NCHW)."""
    _fns = {
        "relu": torch.relu,
        "sigmoid": torch.sigmoid,
        "tanh": torch.tanh,
        "elu": nn.functional.elu,
        "selu": nn.functional.selu,
        "softmax": lambda x: torch.softmax(x, dim=1),
        "linear": lambda x: x,
    }

    def __init__(self, name):
        super().__init__()
        if name not in self._fns:
            raise ConfigurationError(f"unknown activation {name!r}")
        self.name = name

    def forward(self, x):
        return self._fns[self.name](x)

    def extra_repr(self):
        return self.name


class Conv(nn.Module):
    """Conv2d followed by its activation, like a keras Conv2D layer."""
    def __init__(self, in_ch, out_ch, kernel_size, activation="linear", padding="same"):
        super().__init__()
        self.conv = nn.Conv2d(in_ch, out_ch, kernel_size, padding=padding if padding == "same" else 0)
        self.act = Activation(activation)

    def forward(self, x):
        return self.act(self.conv(x))


class Concatenate(nn.Module):
    def __init__(self, dim=1):
        super().__init__()
        self.dim = dim

    def forward(self, *xs):
        return torch.cat(xs, dim=self.dim)


def init_weights(conv, initializer):
    """Apply a keras-named initializer to a conv weight and zero its bias."""
    if initializer == "he_normal":
        nn.init.kaiming_normal_(conv.weight, mode="fan_in", nonlinearity="relu")
    elif initializer == "he_uniform":
        nn.init.kaiming_uniform_(conv.weight, mode="fan_in", nonlinearity="relu")
    elif initializer == "glorot_normal":
        nn.init.xavier_normal_(conv.weight)
    elif initializer == "glorot_uniform":
        nn.init.xavier_uniform_(conv.weight)
    else:
        raise ConfigurationError(f"unknown initializer {initializer!r}")
    if conv.bias is not None:
        nn.init.constant_(conv.bias, 0)
