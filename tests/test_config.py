import pytest
import yaml
from pydantic import ValidationError

from unet.config import ConvBlockConfig, UNetConfig, load_config
from unet.errors import ConfigurationError
from unet.models.summary import describe


def write_yaml(path, data):
    with open(path, "w") as f:
        yaml.safe_dump(data, f)
    return path


def test_defaults():
    cfg = UNetConfig(input_shape=(128, 128, 3))
    assert (cfg.num_classes, cfg.dropout, cfg.filters, cfg.num_layers, cfg.output_activation) == \
        (1, 0.5, 64, 4, "sigmoid")
    block = ConvBlockConfig()
    assert (block.kernel_size, block.activation, block.kernel_initializer, block.padding) == \
        ((3, 3), "relu", "he_normal", "same")


def test_frozen():
    cfg = UNetConfig(input_shape=(32, 32, 1))
    with pytest.raises(ValidationError):
        cfg.filters = 8


def test_filter_schedule():
    assert UNetConfig(input_shape=(32, 32, 1), filters=16, num_layers=3).filter_schedule() == [16, 32, 64]


def test_load_config(tmp_path):
    path = write_yaml(tmp_path / "cfg.yaml", {
        "model": {"input_shape": [64, 64, 1], "filters": 8, "num_layers": 2},
        "learning_rate": 0.001,
    })
    cfg, extra = load_config(path)
    assert cfg.input_shape == (64, 64, 1)
    assert cfg.filters == 8
    assert extra == {"learning_rate": 0.001}


def test_load_config_errors(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(write_yaml(tmp_path / "a.yaml", {"epochs": 3}))
    with pytest.raises(ConfigurationError):
        load_config(write_yaml(tmp_path / "b.yaml", {"model": {"input_shape": [64, 64, 1], "depth": 3}}))


def test_describe_saves_checkpoint(tmp_path):
    path = write_yaml(tmp_path / "cfg.yaml", {"model": {"input_shape": [16, 16, 1], "filters": 2, "num_layers": 2}})
    out = tmp_path / "init.pt"
    model = describe(path, out)
    assert out.exists()
    assert model.output_shape == (None, 16, 16, 1)
