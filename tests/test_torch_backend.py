import pytest
import torch

from unet.errors import ConfigurationError, ShapeMismatchError
from unet.models.torch_backend import TorchBackend


@pytest.fixture
def backend():
    return TorchBackend()


def run(backend, x, y, shape):
    model = backend.bind_model(x, y)
    model.eval()
    with torch.no_grad():
        return model(torch.rand(*shape))


def test_layer_names_are_unique(backend):
    x = backend.input((8, 8, 1))
    a = backend.conv(x, 2, (3, 3))
    b = backend.conv(a, 2, (3, 3))
    assert (a.name, b.name) == ("conv2d", "conv2d_1")


def test_valid_conv_shrinks(backend):
    x = backend.input((10, 12, 1))
    y = backend.conv(x, 3, (3, 3), padding="valid")
    assert y.shape == (None, 8, 10, 3)
    assert run(backend, x, y, (2, 10, 12, 1)).shape == (2, 8, 10, 3)


def test_valid_conv_too_small(backend):
    x = backend.input((2, 2, 1))
    with pytest.raises(ShapeMismatchError):
        backend.conv(x, 3, (3, 3), padding="valid")


@pytest.mark.parametrize("kernel,strides", [((2, 2), (2, 2)), ((3, 3), (2, 2)), ((4, 4), (2, 2))])
def test_same_transposed_conv_doubles(backend, kernel, strides):
    x = backend.input((5, 7, 4))
    y = backend.conv_transpose(x, 2, kernel, strides, padding="same")
    assert y.shape == (None, 10, 14, 2)
    assert run(backend, x, y, (1, 5, 7, 4)).shape == (1, 10, 14, 2)


def test_transposed_kernel_smaller_than_stride(backend):
    x = backend.input((4, 4, 1))
    with pytest.raises(ConfigurationError):
        backend.conv_transpose(x, 2, (1, 1), (2, 2))


def test_pool_floors_odd_sizes(backend):
    x = backend.input((7, 9, 2))
    y = backend.max_pool(x)
    assert y.shape == (None, 3, 4, 2)
    assert run(backend, x, y, (1, 7, 9, 2)).shape == (1, 3, 4, 2)


def test_concat_adds_channels(backend):
    x = backend.input((8, 8, 1))
    a = backend.conv(x, 3, (3, 3))
    b = backend.conv(x, 5, (3, 3))
    y = backend.concat([a, b])
    assert y.shape == (None, 8, 8, 8)
    assert run(backend, x, y, (2, 8, 8, 1)).shape == (2, 8, 8, 8)


def test_concat_rejects_mismatch(backend):
    x = backend.input((8, 8, 1))
    pooled = backend.max_pool(x)
    with pytest.raises(ShapeMismatchError):
        backend.concat([x, pooled])


def test_rejects_bad_arguments(backend):
    x = backend.input((8, 8, 1))
    with pytest.raises(ConfigurationError):
        backend.dropout(x, 1.0)
    with pytest.raises(ConfigurationError):
        backend.conv(x, 2, (3, 3), activation="swish")
    with pytest.raises(ConfigurationError):
        backend.conv(x, 2, (3, 3), kernel_initializer="zeros")
    with pytest.raises(ConfigurationError):
        backend.input((8, 8))


def test_bind_requires_single_input(backend):
    a = backend.input((8, 8, 1))
    b = backend.input((8, 8, 1))
    with pytest.raises(ShapeMismatchError):
        backend.bind_model(a, backend.concat([a, b]))


def test_model_rejects_rank3_batch(backend):
    x = backend.input((8, 8, 1))
    model = backend.bind_model(x, backend.conv(x, 1, (1, 1)))
    with pytest.raises(ShapeMismatchError):
        model(torch.rand(8, 8, 1))
