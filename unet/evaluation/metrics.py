"""
Segmentation metrics.

The numpy functions score one binary mask against another; the torch ones
score a batch of predicted probabilities while training.
"""
import numpy as np


def _confusion(y_true, y_pred):
    """True positive, false positive and false negative pixel counts."""
    t = np.asarray(y_true).astype(bool)
    p = np.asarray(y_pred).astype(bool)
    return (t & p).sum(), (~t & p).sum(), (t & ~p).sum()


def iou_score(y_true, y_pred):
    tp, fp, fn = _confusion(y_true, y_pred)
    union = tp + fp + fn
    # two empty masks agree perfectly
    return 1.0 if union == 0 else tp / union


def precision_score(y_true, y_pred):
    tp, fp, _ = _confusion(y_true, y_pred)
    return tp / (tp + fp) if tp + fp else 0.0


def recall_score(y_true, y_pred):
    tp, _, fn = _confusion(y_true, y_pred)
    return tp / (tp + fn) if tp + fn else 0.0


def f1_score(y_true, y_pred):
    p, r = precision_score(y_true, y_pred), recall_score(y_true, y_pred)
    return 2 * p * r / (p + r) if p + r else 0.0


def dice_coef(y_true, y_pred):
    tp, fp, fn = _confusion(y_true, y_pred)
    total = 2 * tp + fp + fn
    return 1.0 if total == 0 else 2 * tp / total


def dice(y_true, y_pred, smooth=1.0):
    """Soft Dice over the whole batch: (2|A.B| + s) / (|A| + |B| + s)."""
    inter = (y_true * y_pred).sum()
    return (2. * inter + smooth) / (y_true.sum() + y_pred.sum() + smooth)


def iou(y_true, y_pred, threshold=0.5, smooth=1e-6):
    pred = (y_pred >= threshold).float()
    inter = (pred * y_true).sum()
    union = (pred + y_true - pred * y_true).sum()
    return (inter + smooth) / (union + smooth)


def accuracy(y_true, y_pred, threshold=0.5):
    """Pixel accuracy; argmax over channels for multi-class maps."""
    if y_pred.shape[-1] > 1:
        return (y_pred.argmax(dim=-1) == y_true.argmax(dim=-1)).float().mean()
    return ((y_pred >= threshold).float() == y_true).float().mean()
