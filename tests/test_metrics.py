import numpy as np
import pytest
import torch

from unet.evaluation.metrics import (accuracy, dice, dice_coef, f1_score, iou, iou_score,
                                     precision_score, recall_score)


def test_numpy_scores():
    gt = np.array([[1, 1], [0, 0]])
    pred = np.array([[1, 0], [0, 0]])
    assert iou_score(gt, pred) == pytest.approx(0.5)
    assert dice_coef(gt, pred) == pytest.approx(2 / 3)
    assert f1_score(gt, pred) == pytest.approx(2 / 3, abs=1e-6)


def test_precision_and_recall():
    gt = np.array([1, 1, 1, 0, 0])
    pred = np.array([1, 1, 0, 1, 0])
    assert precision_score(gt, pred) == pytest.approx(2 / 3)
    assert recall_score(gt, pred) == pytest.approx(2 / 3)
    assert precision_score(gt, np.zeros(5)) == 0.0
    assert recall_score(np.zeros(5), pred) == 0.0


def test_empty_masks_agree():
    empty = np.zeros((4, 4))
    assert iou_score(empty, empty) == 1.0
    assert dice_coef(empty, empty) == 1.0


def test_soft_dice():
    y = torch.tensor([1.0, 1.0, 0.0, 0.0])
    assert dice(y, y).item() == pytest.approx(1.0)
    # (2*1 + 1) / (2 + 1 + 1)
    assert dice(y, torch.tensor([1.0, 0.0, 0.0, 0.0])).item() == pytest.approx(0.75)


def test_iou_and_accuracy():
    y = torch.tensor([[[[1.0], [0.0]]]])
    p = torch.tensor([[[[0.9], [0.6]]]])
    assert iou(y, p).item() == pytest.approx(0.5, abs=1e-5)
    assert accuracy(y, p).item() == pytest.approx(0.5)
