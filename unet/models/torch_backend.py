"""
PyTorch implementation of the layer capabilities.

Shapes are inferred as layers are added so a bad graph fails while it is
being built, not on the first forward pass.
"""
import itertools
import logging
import math
from collections import Counter

import torch.nn as nn

from unet.errors import ConfigurationError, ShapeMismatchError
from unet.models.backend import Backend
from unet.models.graph import SegmentationModel, SymbolicTensor
from unet.models.layers import Concatenate, Conv, init_weights

logger = logging.getLogger(__name__)


def _pair(v):
    if isinstance(v, int):
        return (v, v)
    return tuple(v)


class TorchBackend(Backend):
    def __init__(self):
        self._ids = itertools.count()
        self._counts = Counter()

    def _name(self, kind):
        n = self._counts[kind]
        self._counts[kind] += 1
        return kind if n == 0 else f"{kind}_{n}"

    def _tensor(self, kind, shape, layer=None, inputs=()):
        return SymbolicTensor(next(self._ids), shape, self._name(kind), layer, inputs, backend=self)

    @staticmethod
    def _check(x):
        if not isinstance(x, SymbolicTensor) or len(x.shape) != 4:
            raise ShapeMismatchError(f"expected a rank-4 tensor handle, got {x!r}")
        return x.shape

    def input(self, shape):
        shape = tuple(shape)
        if len(shape) != 3 or any(int(d) <= 0 for d in shape):
            raise ConfigurationError(f"input shape must be (height, width, channels), got {shape}")
        return self._tensor("input", (None,) + shape)

    def conv(self, x, filters, kernel_size=(3, 3), activation="linear",
             kernel_initializer="glorot_uniform", padding="same"):
        _, h, w, c = self._check(x)
        kh, kw = _pair(kernel_size)
        if padding == "valid":
            h, w = h - kh + 1, w - kw + 1
            if h <= 0 or w <= 0:
                raise ShapeMismatchError(f"kernel {(kh, kw)} larger than input {x.shape}")
        elif padding != "same":
            raise ConfigurationError(f"unknown padding {padding!r}")
        layer = Conv(c, filters, (kh, kw), activation=activation, padding=padding)
        init_weights(layer.conv, kernel_initializer)
        return self._tensor("conv2d", (None, h, w, filters), layer, [x])

    def conv_transpose(self, x, filters, kernel_size=(2, 2), strides=(2, 2), padding="same"):
        _, h, w, c = self._check(x)
        (kh, kw), (sh, sw) = _pair(kernel_size), _pair(strides)
        if padding == "same":
            pads, extra = [], []
            for k, s in ((kh, sh), (kw, sw)):
                if k < s:
                    raise ConfigurationError(f"'same' transposed conv needs kernel >= strides, got {k} < {s}")
                p = math.ceil((k - s) / 2)
                op = 2 * p - (k - s)
                if op and op >= s:
                    raise ConfigurationError(f"unsupported kernel/stride pair {k}/{s} for 'same' padding")
                pads.append(p)
                extra.append(op)
            h, w = h * sh, w * sw
        elif padding == "valid":
            pads, extra = [0, 0], [0, 0]
            h, w = (h - 1) * sh + kh, (w - 1) * sw + kw
        else:
            raise ConfigurationError(f"unknown padding {padding!r}")
        layer = nn.ConvTranspose2d(c, filters, (kh, kw), stride=(sh, sw),
                                   padding=tuple(pads), output_padding=tuple(extra))
        init_weights(layer, "glorot_uniform")
        return self._tensor("conv2d_transpose", (None, h, w, filters), layer, [x])

    def max_pool(self, x, pool_size=(2, 2), strides=(2, 2)):
        _, h, w, c = self._check(x)
        (ph, pw), (sh, sw) = _pair(pool_size), _pair(strides)
        if h < ph or w < pw:
            raise ShapeMismatchError(f"cannot pool {x.shape} with window {(ph, pw)}")
        h, w = (h - ph) // sh + 1, (w - pw) // sw + 1
        return self._tensor("max_pooling2d", (None, h, w, c), nn.MaxPool2d((ph, pw), stride=(sh, sw)), [x])

    def batch_norm(self, x):
        _, h, w, c = self._check(x)
        # keras defaults: momentum 0.99 on the running stats, epsilon 1e-3
        layer = nn.BatchNorm2d(c, eps=1e-3, momentum=0.01)
        return self._tensor("batch_normalization", x.shape, layer, [x])

    def dropout(self, x, rate):
        self._check(x)
        if not 0.0 <= rate < 1.0:
            raise ConfigurationError(f"dropout rate must be in [0, 1), got {rate}")
        return self._tensor("dropout", x.shape, nn.Dropout(rate), [x])

    def concat(self, tensors):
        shapes = [self._check(t) for t in tensors]
        if len({s[1:3] for s in shapes}) != 1:
            raise ShapeMismatchError(f"cannot concatenate {shapes}: spatial sizes differ")
        _, h, w, _ = shapes[0]
        channels = sum(s[3] for s in shapes)
        return self._tensor("concatenate", (None, h, w, channels), Concatenate(dim=1), tensors)

    def bind_model(self, inputs, outputs, name="model", config=None):
        model = SegmentationModel(inputs, outputs, name=name, config=config)
        logger.debug("Bound model %s: %s -> %s, %d params",
                     name, inputs.shape, outputs.shape, model.count_params())
        return model
