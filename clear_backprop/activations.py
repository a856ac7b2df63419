import numpy as np
from typing import Dict, Any
import logging

# Activations work on batch tensors laid out as (out_dim, batch): one sample per
# column. Jacobians are returned as (batch, out_dim, out_dim), entry [b, i, j]
# being d(output i of sample b) / d(input j of sample b).


def _as_batch(z: np.ndarray) -> np.ndarray:
    """View a single sample vector as a one column batch."""
    z = np.asarray(z)
    if z.ndim == 1:
        return z.reshape(-1, 1)
    return z


def jacobian_from_diagonals(diagonals: np.ndarray) -> np.ndarray:
    """Batched version of np.diag.

    Args:
        diagonals: Per-sample diagonals, shape (out_dim, batch).

    Returns:
        Tensor of shape (batch, out_dim, out_dim) with every off-diagonal entry zero.
    """
    diagonals = _as_batch(diagonals)
    out_dim, batch = diagonals.shape
    dtype = object if diagonals.dtype == object else float
    result = np.zeros((batch, out_dim, out_dim), dtype=dtype)
    idx = np.arange(out_dim)
    result[:, idx, idx] = diagonals.T
    return result


class Activation:
    """Base class for all activation functions.

    Subclasses acting elementwise only implement `compute` and
    `derivative_diagonal`; the full Jacobian and the Jacobian-gradient
    contraction follow from the diagonal.
    """

    name = 'activation'
    elementwise = True

    def compute(self, z: np.ndarray) -> np.ndarray:
        """Compute the activation for a batch of pre-activation values.

        Args:
            z: Pre-activation batch, shape (out_dim, batch).

        Returns:
            Activated batch of identical shape.
        """
        raise NotImplementedError

    def derivative_diagonal(self, z: np.ndarray) -> np.ndarray:
        """Diagonal of the per-sample Jacobian, shape (out_dim, batch).

        Only meaningful for elementwise activations.
        """
        raise NotImplementedError

    def derivative(self, z: np.ndarray) -> np.ndarray:
        """Compute the Jacobian of the activation with respect to its input 'z'.

        Args:
            z: Pre-activation batch, shape (out_dim, batch).

        Returns:
            Jacobian tensor of shape (batch, out_dim, out_dim).
        """
        z = _as_batch(z)
        logging.debug(f"{self.__class__.__name__} derivative - input shape: {z.shape}")
        return jacobian_from_diagonals(self.derivative_diagonal(z))

    def contract(self, z: np.ndarray, gradient: np.ndarray) -> np.ndarray:
        """Multiply each sample's Jacobian by that sample's gradient vector.

        Equal to einsum('bij,jb->ib', derivative(z), gradient).

        Args:
            z: Pre-activation batch, shape (out_dim, batch).
            gradient: Gradient with respect to the activation output, same shape as z.

        Returns:
            Gradient with respect to z, shape (out_dim, batch).
        """
        return self.derivative_diagonal(_as_batch(z)) * _as_batch(gradient)

    def get_config(self) -> Dict[str, Any]:
        """Constructor arguments, used when saving a network."""
        return {}

    def __eq__(self, other):
        return type(self) is type(other) and self.get_config() == other.get_config()

    def __hash__(self):
        return hash((type(self).__name__, tuple(sorted(self.get_config().items()))))

    def __repr__(self):
        args = ", ".join(f"{k}={v!r}" for k, v in self.get_config().items())
        return f"{self.__class__.__name__}({args})"


class ReLU(Activation):
    """Rectified Linear Unit activation function.

    Mathematical form:
        compute: f(z) = max(0, z)
        derivative: f'(z) = 1 if z > 0 else 0   (0 at z == 0)
    """

    name = 'relu'

    def compute(self, z: np.ndarray) -> np.ndarray:
        """Compute ReLU activation: max(0, z)"""
        logging.debug(f"ReLU compute - input shape: {np.shape(z)}")
        return np.where(z > 0, z, 0.0)

    def derivative_diagonal(self, z: np.ndarray) -> np.ndarray:
        return np.where(z > 0, 1.0, 0.0)


class Linear(Activation):
    """Linear activation function (identity).

    Mathematical form:
        compute: f(z) = z
        derivative: f'(z) = 1
    """

    name = 'linear'

    def compute(self, z: np.ndarray) -> np.ndarray:
        # a copy, so the layer's cached A never aliases Z
        return np.array(z, copy=True)

    def derivative_diagonal(self, z: np.ndarray) -> np.ndarray:
        return np.ones(np.shape(z))


class Sigmoid(Activation):
    """Sigmoid activation function.

    Mathematical form:
        compute: f(z) = 1 / (1 + e^-z)
        derivative: f'(z) = f(z) * (1 - f(z))
    """

    name = 'sigmoid'

    def compute(self, z: np.ndarray) -> np.ndarray:
        logging.debug(f"Sigmoid compute - input shape: {np.shape(z)}")
        # e^-z overflows to inf for very negative z, which still yields the correct 0
        with np.errstate(over='ignore'):
            return 1.0 / (1.0 + np.exp(-z))

    def derivative_diagonal(self, z: np.ndarray) -> np.ndarray:
        sig = self.compute(z)
        return sig * (1.0 - sig)


class LeakyReLU(Activation):
    """Leaky ReLU: like ReLU but negative inputs keep a small slope.

    LeakyReLU(0) behaves as ReLU.

    Mathematical form:
        compute: f(z) = z if z > 0 else slope * z
        derivative: f'(z) = 1 if z > 0 else slope
    """

    name = 'leaky_relu'

    def __init__(self, slope: float = 0.01):
        self.slope = float(slope)

    def compute(self, z: np.ndarray) -> np.ndarray:
        logging.debug(f"LeakyReLU compute - input shape: {np.shape(z)}, slope: {self.slope}")
        return np.where(z > 0, z, self.slope * z)

    def derivative_diagonal(self, z: np.ndarray) -> np.ndarray:
        return np.where(z > 0, 1.0, self.slope)

    def get_config(self) -> Dict[str, Any]:
        return {'slope': self.slope}


class Tanh(Activation):
    """Hyperbolic tangent activation function.

    Mathematical form:
        compute: f(z) = (e^2z - 1) / (e^2z + 1)
        derivative: f'(z) = 1 - f(z)^2
    """

    name = 'tanh'

    def compute(self, z: np.ndarray) -> np.ndarray:
        # np.tanh evaluates the same formula without the inf/inf overflow for large z
        logging.debug(f"Tanh compute - input shape: {np.shape(z)}")
        return np.tanh(z)

    def derivative_diagonal(self, z: np.ndarray) -> np.ndarray:
        t = self.compute(z)
        return 1.0 - t * t


class Softmax(Activation):
    """Softmax activation function.

    Normalizes every sample (column) to a probability distribution.

    Mathematical form:
        compute: f(z)_i = e^(z_i - max(z)) / sum_j e^(z_j - max(z))
        derivative: J = diag(s) - s s^T, s = f(z), one dense matrix per sample
    """

    name = 'softmax'
    elementwise = False

    def compute(self, z: np.ndarray) -> np.ndarray:
        """Compute softmax per sample safely using the max subtraction trick."""
        single = np.ndim(z) == 1
        z = _as_batch(z)
        logging.debug(f"Softmax compute - input shape: {z.shape}")

        z_max = np.max(z, axis=0, keepdims=True)
        exp_z = np.exp(z - z_max)
        result = exp_z / np.sum(exp_z, axis=0, keepdims=True)

        if single:
            return result.ravel()
        return result

    def derivative_diagonal(self, z: np.ndarray) -> np.ndarray:
        raise NotImplementedError("Softmax has a dense Jacobian; use derivative()")

    def derivative(self, z: np.ndarray) -> np.ndarray:
        z = _as_batch(z)
        logging.debug(f"Softmax derivative - input shape: {z.shape}")
        s = self.compute(z).T  # (batch, out_dim)

        result = -(s[:, :, None] * s[:, None, :])
        idx = np.arange(s.shape[1])
        result[:, idx, idx] = result[:, idx, idx] + s
        return result

    def contract(self, z: np.ndarray, gradient: np.ndarray) -> np.ndarray:
        # (diag(s) - s s^T) g == s * (g - s.g) for every sample
        s = self.compute(_as_batch(z))
        gradient = _as_batch(gradient)
        return s * (gradient - np.sum(s * gradient, axis=0, keepdims=True))


# Dictionary mapping activation function names to their classes
ACTIVATION_FUNCTIONS = {
    'relu': ReLU,
    'linear': Linear,
    'sigmoid': Sigmoid,
    'leaky_relu': LeakyReLU,
    'tanh': Tanh,
    'softmax': Softmax,
}


def get_activation(name: str, **kwargs) -> Activation:
    """Factory function to get an activation function instance by name.

    Args:
        name: Name of the activation function (case-insensitive).
        **kwargs: Additional arguments to pass to the activation function's constructor
                  (e.g., 'slope' for LeakyReLU).

    Returns:
        An instance of the requested Activation class.

    Raises:
        ValueError: If the activation function name is not recognized.
    """
    name_lower = name.lower()
    if name_lower not in ACTIVATION_FUNCTIONS:
        raise ValueError(
            f"Unknown activation function '{name}'. "
            f"Available functions: {list(ACTIVATION_FUNCTIONS.keys())}"
        )
    return ACTIVATION_FUNCTIONS[name_lower](**kwargs)
