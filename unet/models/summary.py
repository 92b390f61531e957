"""
Build a U-Net from a YAML config and print its layers.
"""
import argparse
import logging
from pathlib import Path

from unet.config import load_config
from unet.models.infer import save_checkpoint
from unet.models.unet import build_unet_from_config

logger = logging.getLogger(__name__)


def describe(config_path, out=None):
    config, _ = load_config(config_path)
    model = build_unet_from_config(config)
    logger.info("\n%s", model.summary())
    if out:
        save_checkpoint(model, out, epoch=0)
        logger.info("Saved initial weights to %s", out)
    return model


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", default="configs/unet.yaml")
    parser.add_argument("--out", default=None, help="optional checkpoint path for the initial weights")
    args = parser.parse_args()
    if not Path(args.config).exists():
        parser.error(f"config not found: {args.config}")
    describe(args.config, args.out)
