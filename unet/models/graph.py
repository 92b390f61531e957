"""
Symbolic tensors and the model they are bound into.
"""
import logging
from collections import defaultdict

import numpy as np
import torch
import torch.nn as nn
from tqdm import tqdm

from unet.errors import ShapeMismatchError
from unet.models.losses import get_loss, get_metric, get_optimizer

logger = logging.getLogger(__name__)


class SymbolicTensor:
    """
    Handle to the output of one layer in a graph under construction.

    `shape` is (None, height, width, channels); the batch size is unknown
    until the model runs.
    """
    def __init__(self, id, shape, name, layer=None, inputs=(), backend=None):
        self.id = id
        self.shape = tuple(shape)
        self.name = name
        self.layer = layer
        self.inputs = tuple(inputs)
        self.backend = backend

    def __repr__(self):
        return f"<SymbolicTensor {self.name} shape={self.shape}>"


def _topological(output):
    # ids grow with creation, and a tensor can only be built from older ones
    seen = {}
    stack = [output]
    while stack:
        t = stack.pop()
        if t.id not in seen:
            seen[t.id] = t
            stack.extend(t.inputs)
    return [seen[i] for i in sorted(seen)]


class SegmentationModel(nn.Module):
    """
    A graph of layers bound to one input and one output.

    Takes and returns channels-last batches (batch, height, width, channels);
    the layers themselves run on NCHW tensors.
    """
    def __init__(self, inputs, outputs, name="model", config=None):
        super().__init__()
        order = _topological(outputs)
        sources = [t for t in order if t.layer is None]
        if sources != [inputs]:
            raise ShapeMismatchError(
                f"output {outputs.name} must depend on exactly the input {inputs.name}, "
                f"found {[t.name for t in sources]}")
        self.name = name
        self.config = config
        self.input_shape = inputs.shape
        self.output_shape = outputs.shape
        self._input_id = inputs.id
        self._output_id = outputs.id
        self._nodes = [(t.id, t.name, [p.id for p in t.inputs], t.shape) for t in order if t.layer is not None]
        self.graph_layers = nn.ModuleDict({t.name: t.layer for t in order if t.layer is not None})
        self.optimizer = None
        self.loss_fn = None
        self.metric_fns = {}

    def forward(self, x):
        if x.dim() != 4:
            raise ShapeMismatchError(f"expected (batch, height, width, channels), got {tuple(x.shape)}")
        values = {self._input_id: x.permute(0, 3, 1, 2)}
        for node_id, name, input_ids, _ in self._nodes:
            values[node_id] = self.graph_layers[name](*[values[i] for i in input_ids])
        return values[self._output_id].permute(0, 2, 3, 1)

    @property
    def layers(self):
        """(name, layer type) pairs in execution order."""
        return [(name, type(self.graph_layers[name]).__name__) for _, name, _, _ in self._nodes]

    def count_params(self):
        return sum(p.numel() for p in self.parameters() if p.requires_grad)

    def summary(self):
        rows = [(n, type(self.graph_layers[n]).__name__, str(shape),
                 sum(p.numel() for p in self.graph_layers[n].parameters()))
                for _, n, _, shape in self._nodes]
        header = ("Layer", "Type", "Output shape", "Params")
        widths = [max(len(str(r[i])) for r in rows + [header]) for i in range(4)]
        fmt = "  ".join("{:<%d}" % w for w in widths)
        lines = [f'Model: "{self.name}"', fmt.format(*header), "-" * (sum(widths) + 6)]
        lines.append(fmt.format("input", "Input", str(self.input_shape), 0))
        lines += [fmt.format(*r) for r in rows]
        lines.append(f"Trainable params: {self.count_params():,}")
        return "\n".join(lines)

    # training

    def compile(self, optimizer="adam", loss="binary_crossentropy", metrics=None, learning_rate=1e-3):
        self.optimizer = get_optimizer(optimizer, self.parameters(), learning_rate)
        self.loss_fn = get_loss(loss)
        self.metric_fns = {}
        for m in metrics or []:
            name = m if isinstance(m, str) else getattr(m, "__name__", type(m).__name__)
            self.metric_fns[name] = get_metric(m)
        return self

    def _device(self):
        return next(self.parameters()).device

    def _batch_scores(self, y, preds, loss):
        scores = {"loss": loss.item()}
        with torch.no_grad():
            for name, fn in self.metric_fns.items():
                scores[name] = float(fn(y, preds))
        return scores

    def fit(self, training_data, epochs=1, validation_data=None, verbose=True, device=None):
        """
        Train on an iterable of (images, masks) batches, both channels-last.

        Returns a history dict with one entry per epoch for the loss, each
        metric and, when validation data is given, their `val_` versions.
        """
        if self.optimizer is None:
            raise RuntimeError("compile() must be called before fit()")
        device = torch.device(device or ("cuda" if torch.cuda.is_available() else "cpu"))
        self.to(device)
        history = defaultdict(list)
        for epoch in range(epochs):
            self.train()
            totals, n = defaultdict(float), 0
            pbar = tqdm(training_data, desc=f"Epoch {epoch + 1}/{epochs}", disable=not verbose)
            for x, y in pbar:
                x = x.to(device).float(); y = y.to(device).float()
                preds = self(x)
                loss = self.loss_fn(y, preds)
                self.optimizer.zero_grad()
                loss.backward()
                self.optimizer.step()
                for k, v in self._batch_scores(y, preds, loss).items():
                    totals[k] += v
                n += 1
                pbar.set_postfix(loss=loss.item())
            if n == 0:
                raise ValueError("training_data yielded no batches")
            for k, v in totals.items():
                history[k].append(v / n)
            if validation_data is not None:
                for k, v in self.evaluate(validation_data).items():
                    history["val_" + k].append(v)
            logger.info("Epoch %d/%d %s", epoch + 1, epochs,
                        " ".join(f"{k}={v[-1]:.4f}" for k, v in history.items()))
        return dict(history)

    def evaluate(self, data):
        if self.loss_fn is None:
            raise RuntimeError("compile() must be called before evaluate()")
        device = self._device()
        self.eval()
        totals, n = defaultdict(float), 0
        with torch.no_grad():
            for x, y in data:
                x = x.to(device).float(); y = y.to(device).float()
                preds = self(x)
                for k, v in self._batch_scores(y, preds, self.loss_fn(y, preds)).items():
                    totals[k] += v
                n += 1
        if n == 0:
            raise ValueError("data yielded no batches")
        return {k: v / n for k, v in totals.items()}

    def predict(self, inputs, batch_size=32):
        """Run inference on a (N, height, width, channels) array; returns numpy."""
        if isinstance(inputs, np.ndarray):
            inputs = torch.from_numpy(np.ascontiguousarray(inputs, dtype=np.float32))
        device = self._device()
        self.eval()
        out = []
        with torch.no_grad():
            for start in range(0, inputs.shape[0], batch_size):
                x = inputs[start:start + batch_size].to(device).float()
                out.append(self(x).cpu().numpy())
        if not out:
            return np.zeros((0,) + tuple(self.output_shape[1:]), dtype=np.float32)
        return np.concatenate(out)
