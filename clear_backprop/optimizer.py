import numpy as np
from typing import List, Optional, Sequence, Tuple
import logging

Gradients = List[Tuple[np.ndarray, np.ndarray]]


class Optimizer:
    """
    Base class for parameter update rules.

    The network computes every layer's (d_W, d_B) first and then hands the
    whole list to `step`, which mutates the layers in place.
    """

    def __init__(self, learning_rate: float = 0.01):
        if learning_rate <= 0.0:
            raise ValueError(f"Invalid learning_rate: {learning_rate}")
        self.learning_rate = float(learning_rate)

    def step(self, layers: Sequence, gradients: Gradients):
        """Apply one update. `gradients[i]` belongs to `layers[i]`."""
        raise NotImplementedError("Optimizer.step() must be implemented by subclasses.")

    def reset(self):
        """Forget any state accumulated between steps."""


class SGD(Optimizer):
    """
    Stochastic gradient descent with optional momentum.

        v = momentum * v + g
        param = param - learning_rate * v

    With momentum 0 this is the plain update param -= learning_rate * g.
    """

    def __init__(self, learning_rate: float = 0.01, momentum: float = 0.0):
        super().__init__(learning_rate)
        if not 0.0 <= momentum < 1.0:
            raise ValueError(f"Invalid momentum: {momentum}")
        self.momentum = float(momentum)
        self._velocities: Optional[Gradients] = None

    def reset(self):
        self._velocities = None

    def _velocities_for(self, layers: Sequence) -> Gradients:
        shapes = [(layer.W.shape, layer.B.shape) for layer in layers]
        if self._velocities is None or [(v_w.shape, v_b.shape) for v_w, v_b in self._velocities] != shapes:
            if self._velocities is not None:
                logging.info("Network shape changed, resetting SGD velocities.")
            self._velocities = [(np.zeros(w), np.zeros(b)) for w, b in shapes]
        return self._velocities

    def step(self, layers: Sequence, gradients: Gradients):
        if self.momentum == 0.0:
            for layer, (d_w, d_b) in zip(layers, gradients):
                layer.W = layer.W - self.learning_rate * d_w
                layer.B = layer.B - self.learning_rate * d_b
            return

        velocities = self._velocities_for(layers)
        for i, (layer, (d_w, d_b)) in enumerate(zip(layers, gradients)):
            v_w, v_b = velocities[i]
            v_w = self.momentum * v_w + d_w
            v_b = self.momentum * v_b + d_b
            velocities[i] = (v_w, v_b)
            layer.W = layer.W - self.learning_rate * v_w
            layer.B = layer.B - self.learning_rate * v_b

    def __repr__(self):
        return f"SGD(learning_rate={self.learning_rate}, momentum={self.momentum})"
