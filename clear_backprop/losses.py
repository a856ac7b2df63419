import numpy as np
import logging

from .errors import DimensionMismatch


def _check_shapes(output: np.ndarray, target: np.ndarray):
    if np.shape(output) != np.shape(target):
        raise DimensionMismatch(np.shape(output), np.shape(target), operation="loss")


class Loss:
    """Base class for loss functions. Stateless."""

    name = 'loss'

    def compute(self, output: np.ndarray, target: np.ndarray) -> float:
        """Scalar loss for an output/target pair of identical shape."""
        raise NotImplementedError

    def derivative(self, output: np.ndarray, target: np.ndarray) -> np.ndarray:
        """Gradient of `compute` with respect to `output`, same shape as `output`."""
        raise NotImplementedError

    def sample_losses(self, output: np.ndarray, target: np.ndarray) -> np.ndarray:
        """Loss of each column of a (features, batch) pair, shape (batch,)."""
        _check_shapes(output, target)
        output, target = np.asarray(output), np.asarray(target)
        if output.ndim == 1:
            return np.array([self.compute(output, target)])
        return np.array([self.compute(output[:, i], target[:, i]) for i in range(output.shape[1])])

    def __repr__(self):
        return f"{self.__class__.__name__}()"


class MSE(Loss):
    """
    Mean Squared Error.

    Loss = (1/n) * Σ(output_i - target_i)^2
    Gradient (dL/dOutput) = (2/n) * (output - target)

    n is the total number of elements, so the gradient is exactly the gradient
    of the loss formula. For a (features, batch) tensor this averages over the
    batch as well.
    """

    name = 'mse'

    def compute(self, output: np.ndarray, target: np.ndarray) -> float:
        _check_shapes(output, target)
        error = np.asarray(output) - np.asarray(target)
        loss = float(np.mean(error * error))
        if np.isnan(loss):
            logging.warning("NaN detected in MSE loss")
        return loss

    def derivative(self, output: np.ndarray, target: np.ndarray) -> np.ndarray:
        _check_shapes(output, target)
        error = np.asarray(output) - np.asarray(target)
        return 2.0 * error / error.size

    def sample_losses(self, output: np.ndarray, target: np.ndarray) -> np.ndarray:
        """Per-sample MSE of a (features, batch) tensor, shape (batch,)."""
        _check_shapes(output, target)
        error = np.asarray(output) - np.asarray(target)
        if error.ndim == 1:
            return np.array([np.mean(error * error)])
        return np.mean(error * error, axis=0)


# Dictionary mapping loss names to their classes
LOSS_FUNCTIONS = {
    'mse': MSE,
}


def get_loss(name: str) -> Loss:
    """Factory function to get a loss instance by name.

    Raises:
        ValueError: If the loss name is not recognized.
    """
    name_lower = name.lower()
    if name_lower not in LOSS_FUNCTIONS:
        raise ValueError(f"Unsupported loss '{name}'. "
                         f"Valid options: {list(LOSS_FUNCTIONS.keys())}")
    return LOSS_FUNCTIONS[name_lower]()
