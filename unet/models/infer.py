"""
Checkpoints and inference.
"""
import argparse
import logging
from pathlib import Path

import numpy as np
import torch
from tqdm import tqdm

from unet.config import UNetConfig, make_config
from unet.errors import ConfigurationError
from unet.evaluation.metrics import dice_coef, f1_score, iou_score
from unet.models.unet import build_unet_from_config

logger = logging.getLogger(__name__)


def save_checkpoint(model, path, **extra):
    """Save weights with the config needed to rebuild the graph."""
    if model.config is None:
        raise ConfigurationError("only models built by build_unet can be checkpointed")
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    state = {"model_state": model.state_dict(), "config": model.config.model_dump()}
    state.update(extra)
    torch.save(state, str(path))


def load_model(ckpt_path, device=None):
    device = torch.device(device or ("cuda" if torch.cuda.is_available() else "cpu"))
    d = torch.load(str(ckpt_path), map_location=device)
    if "config" not in d:
        raise KeyError(f"{ckpt_path} has no model config; save it with save_checkpoint()")
    model = build_unet_from_config(make_config(UNetConfig, **d["config"])).to(device)
    model.load_state_dict(d["model_state"])
    model.eval()
    return model


def infer_folder(ckpt, in_dir, out_dir, threshold=0.5, batch_size=8):
    """
    Segment every `*.npy` image (height, width, channels) in a folder.

    Writes `<name>.proba.npy` with the model output and `<name>.pred.npy`
    with the thresholded mask (argmax for multi-class outputs). Images with
    a `<name>.mask.npy` beside them are scored against it.

    Returns:
        dict mapping each scored image name to its IoU, Dice and F1.
    """
    model = load_model(ckpt)
    Path(out_dir).mkdir(parents=True, exist_ok=True)
    files = sorted([p for p in Path(in_dir).glob("*.npy") if "mask" not in p.name])
    scores = {}
    for p in tqdm(files, desc="inference"):
        arr = np.load(str(p)).astype(np.float32)
        if arr.ndim == 2:
            arr = arr[:, :, None]
        probs = model.predict(arr[None], batch_size=batch_size)[0]
        if probs.shape[-1] == 1:
            pred = (probs[..., 0] >= threshold).astype(np.uint8)
        else:
            pred = probs.argmax(axis=-1).astype(np.uint8)
        np.save(str(Path(out_dir) / (p.stem + ".proba.npy")), probs)
        np.save(str(Path(out_dir) / (p.stem + ".pred.npy")), pred)
        mpath = p.with_name(p.stem + ".mask.npy")
        if mpath.exists():
            gt = np.load(str(mpath)).astype(np.uint8).reshape(pred.shape)
            scores[p.stem] = {"iou": float(iou_score(gt, pred)), "dice": float(dice_coef(gt, pred)),
                              "f1": float(f1_score(gt, pred))}
            logger.info("%s iou=%.4f dice=%.4f f1=%.4f", p.stem,
                        scores[p.stem]["iou"], scores[p.stem]["dice"], scores[p.stem]["f1"])
    logger.info("Wrote predictions for %d images to %s", len(files), out_dir)
    return scores


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser()
    parser.add_argument("--ckpt", required=True)
    parser.add_argument("--in_dir", default="data/images")
    parser.add_argument("--out_dir", default="data/outputs")
    parser.add_argument("--threshold", type=float, default=0.5)
    args = parser.parse_args()
    infer_folder(args.ckpt, args.in_dir, args.out_dir, threshold=args.threshold)
