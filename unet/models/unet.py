"""
U-Net for segmentation.

Ronneberger et al., "U-Net: Convolutional Networks for Biomedical Image
Segmentation", 2015.
"""
import logging

from unet.config import ConvBlockConfig, UNetConfig, make_config
from unet.errors import ShapeMismatchError
from unet.models.torch_backend import TorchBackend

logger = logging.getLogger(__name__)


def build_conv_block(input_tensor, config=None, backend=None):
    """
    Two convolutions, each optionally followed by batch norm.

    Dropout, when enabled, sits after the first convolution only.

    Args:
        input_tensor: rank-4 handle (batch, height, width, channels).
        config: ConvBlockConfig, or a dict of its fields. Defaults to
            ConvBlockConfig().
        backend: defaults to the backend that produced `input_tensor`.

    Returns:
        handle with `config.filters` channels.
    """
    if config is None:
        config = ConvBlockConfig()
    elif isinstance(config, dict):
        config = make_config(ConvBlockConfig, **config)
    if len(input_tensor.shape) != 4:
        raise ShapeMismatchError(f"conv block expects a rank-4 input, got {input_tensor.shape}")
    backend = backend or input_tensor.backend

    x = backend.conv(input_tensor, config.filters, config.kernel_size,
                     activation=config.activation,
                     kernel_initializer=config.kernel_initializer,
                     padding=config.padding)
    if config.use_batch_norm:
        x = backend.batch_norm(x)
    if config.dropout > 0:
        x = backend.dropout(x, config.dropout)

    x = backend.conv(x, config.filters, config.kernel_size,
                     activation=config.activation,
                     kernel_initializer=config.kernel_initializer,
                     padding=config.padding)
    if config.use_batch_norm:
        x = backend.batch_norm(x)
    return x


def _plain_block(filters):
    return ConvBlockConfig(filters=filters, use_batch_norm=False, dropout=0.0)


def build_unet(input_shape, num_classes=1, dropout=0.5, filters=64, num_layers=4,
               output_activation="sigmoid", backend=None):
    """
    Build a U-Net.

    Args:
        input_shape: (height, width, channels), no batch axis.
        num_classes: output channels.
        dropout: rate applied once before the bottleneck; 0 disables it.
        filters: filters of the first convolution, doubled at each stage.
        num_layers: number of downsampling stages.
        output_activation: "sigmoid" for binary masks, "softmax" for
            multi-class maps.
        backend: a Backend; a fresh TorchBackend when omitted.

    Returns:
        SegmentationModel mapping (batch, H, W, C) to (batch, H, W, num_classes).
    """
    config = make_config(UNetConfig, input_shape=input_shape, num_classes=num_classes,
                         dropout=dropout, filters=filters, num_layers=num_layers,
                         output_activation=output_activation)
    return build_unet_from_config(config, backend=backend)


def build_unet_from_config(config, backend=None):
    """
    Build a U-Net from a UNetConfig (or a dict of its fields).

    The decoder walks `config.filter_schedule()` backwards, so its filter
    counts mirror the encoder's exactly; no halving happens at build time.
    """
    if not isinstance(config, UNetConfig):
        config = make_config(UNetConfig, **dict(config))
    backend = backend or TorchBackend()
    schedule = config.filter_schedule()

    inputs = backend.input(config.input_shape)
    x = inputs
    down_layers = []

    for i, filters in enumerate(schedule):
        x = build_conv_block(x, _plain_block(filters), backend)
        down_layers.append(x)
        x = backend.max_pool(x, pool_size=(2, 2), strides=(2, 2))
        logger.debug("encoder stage %d: %d filters", i, filters)
    down_layers = tuple(down_layers)

    if config.dropout > 0:
        x = backend.dropout(x, config.dropout)

    x = build_conv_block(x, _plain_block(schedule[-1] * 2), backend)
    logger.debug("bottleneck: %d filters", schedule[-1] * 2)

    for i, (skip, filters) in enumerate(zip(reversed(down_layers), reversed(schedule))):
        x = backend.conv_transpose(x, filters, kernel_size=(2, 2), strides=(2, 2), padding="same")
        x = backend.concat([skip, x])
        x = build_conv_block(x, _plain_block(filters), backend)
        logger.debug("decoder stage %d: %d filters", i, filters)

    outputs = backend.conv(x, config.num_classes, (1, 1),
                           activation=config.output_activation,
                           kernel_initializer="glorot_uniform", padding="same")
    return backend.bind_model(inputs, outputs, name="unet", config=config)
