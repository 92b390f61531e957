"""
Losses, metrics and optimizers looked up by name.

Losses and metrics take (y_true, y_pred) with y_pred already activated.
"""
import torch
import torch.nn.functional as F

from unet.errors import ConfigurationError
from unet.evaluation.metrics import accuracy, dice, iou

EPS = 1e-7


def binary_crossentropy(y_true, y_pred):
    return F.binary_cross_entropy(y_pred.clamp(EPS, 1 - EPS), y_true)


def categorical_crossentropy(y_true, y_pred):
    # channels-last one-hot targets
    return -(y_true * torch.log(y_pred.clamp(EPS, 1.0))).sum(dim=-1).mean()


def dice_loss(y_true, y_pred):
    return 1 - dice(y_true, y_pred)


LOSSES = {
    "binary_crossentropy": binary_crossentropy,
    "categorical_crossentropy": categorical_crossentropy,
    "dice": dice_loss,
}

METRICS = {"dice": dice, "iou": iou, "accuracy": accuracy}

OPTIMIZERS = {
    "adam": torch.optim.Adam,
    "sgd": torch.optim.SGD,
    "rmsprop": torch.optim.RMSprop,
}


def get_loss(loss):
    if callable(loss):
        return loss
    if loss not in LOSSES:
        raise ConfigurationError(f"unknown loss {loss!r}, expected one of {sorted(LOSSES)}")
    return LOSSES[loss]


def get_metric(metric):
    if callable(metric):
        return metric
    if metric not in METRICS:
        raise ConfigurationError(f"unknown metric {metric!r}, expected one of {sorted(METRICS)}")
    return METRICS[metric]


def get_optimizer(optimizer, params, learning_rate=1e-3):
    if isinstance(optimizer, torch.optim.Optimizer):
        return optimizer
    if optimizer not in OPTIMIZERS:
        raise ConfigurationError(f"unknown optimizer {optimizer!r}, expected one of {sorted(OPTIMIZERS)}")
    return OPTIMIZERS[optimizer](params, lr=learning_rate)
