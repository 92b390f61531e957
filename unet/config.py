"""
Model configuration records.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from unet.errors import ConfigurationError

logger = logging.getLogger(__name__)

ACTIVATIONS = ("relu", "sigmoid", "softmax", "tanh", "elu", "selu", "linear")
INITIALIZERS = ("he_normal", "he_uniform", "glorot_normal", "glorot_uniform")
PADDINGS = ("same", "valid")


def _check_activation(value: str) -> str:
    if value not in ACTIVATIONS:
        raise ValueError(f"unknown activation {value!r}, expected one of {ACTIVATIONS}")
    return value


class ConvBlockConfig(BaseModel):
    """
    Settings for one two-convolution block.

    Dropout is applied once, after the first convolution.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    filters: int = Field(16, gt=0)
    kernel_size: Tuple[int, int] = (3, 3)
    activation: str = "relu"
    kernel_initializer: str = "he_normal"
    padding: str = "same"
    use_batch_norm: bool = True
    dropout: float = Field(0.3, ge=0.0, lt=1.0)

    @field_validator("kernel_size")
    @classmethod
    def _positive_kernel(cls, v):
        if min(v) <= 0:
            raise ValueError("kernel_size entries must be positive")
        return v

    @field_validator("activation")
    @classmethod
    def _activation(cls, v):
        return _check_activation(v)

    @field_validator("kernel_initializer")
    @classmethod
    def _initializer(cls, v):
        if v not in INITIALIZERS:
            raise ValueError(f"unknown initializer {v!r}, expected one of {INITIALIZERS}")
        return v

    @field_validator("padding")
    @classmethod
    def _padding(cls, v):
        if v not in PADDINGS:
            raise ValueError(f"padding must be one of {PADDINGS}")
        return v


class UNetConfig(BaseModel):
    """
    Settings for the whole encoder-decoder.

    Args:
        input_shape: (height, width, channels) of one sample, no batch axis.
        num_classes: channels of the output map.
        dropout: rate applied once between the encoder and the bottleneck.
        filters: filters of the first encoder stage, doubled at every stage.
        num_layers: number of encoder (and decoder) stages.
        output_activation: activation of the 1x1 classifier, e.g. "sigmoid"
            for binary masks or "softmax" for multi-class maps.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    input_shape: Tuple[int, int, int]
    num_classes: int = Field(1, ge=1)
    dropout: float = Field(0.5, ge=0.0, lt=1.0)
    filters: int = Field(64, gt=0)
    num_layers: int = Field(4, ge=1)
    output_activation: str = "sigmoid"

    @field_validator("input_shape")
    @classmethod
    def _positive_shape(cls, v):
        if min(v) <= 0:
            raise ValueError("input_shape entries must be positive")
        return v

    @field_validator("output_activation")
    @classmethod
    def _activation(cls, v):
        return _check_activation(v)

    def filter_schedule(self):
        """Filter counts of the encoder stages, e.g. [16, 32, 64] for filters=16, num_layers=3."""
        return [self.filters * 2 ** i for i in range(self.num_layers)]


def make_config(cls, **kwargs):
    """Build a config record, turning pydantic errors into ConfigurationError."""
    try:
        return cls(**kwargs)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


def load_config(path: Union[str, Path]) -> Tuple[UNetConfig, Dict[str, Any]]:
    """
    Read a YAML file with a `model:` mapping plus training keys.

    Returns the model config and the remaining keys as a plain dict.
    """
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    if "model" not in raw:
        raise ConfigurationError(f"{path}: missing 'model' section")
    cfg = dict(raw)
    model = make_config(UNetConfig, **cfg.pop("model"))
    logger.info("Loaded config from %s: %s", path, model)
    return model, cfg
