import numpy as np
from typing import Optional, Tuple, Union
import logging

from .activations import Activation, Linear, get_activation
from .errors import DimensionMismatch, MismatchedDimensions

RandomLike = Union[None, int, np.random.Generator]


class Layer:
    """
    A fully connected layer: an affine map followed by an activation.

    Inputs are batches laid out as (input_dim, batch), one sample per column,
    and the weights pre-multiply them:

        Z = W @ X + B        (B broadcast across the batch columns)
        A = activation(Z)

    Key Attributes:
        W (np.ndarray): Weight matrix of shape (output_dim, input_dim). Each row holds
                        the weights of one output feature.
        B (np.ndarray): Bias column of shape (output_dim, 1).
        activation (Activation): Applied to Z. Defaults to Linear.
        Z (np.ndarray): Pre-activation values of the most recent forward call,
                        shape (output_dim, batch).
        A (np.ndarray): Activated values of the most recent forward call,
                        shape (output_dim, batch).
        d_W (np.ndarray): Weight gradient of the most recent backprop, shape of W.
        d_B (np.ndarray): Bias gradient of the most recent backprop, shape of B.

    Dimensions are fixed once a layer is constructed.
    """

    def __init__(self, input_dim: int, output_dim: int, rng: RandomLike = None, id: int = 0):
        """
        Creates a layer with independent uniform random weights and biases in [-1, 1].

        Args:
            input_dim: Number of input features.
            output_dim: Number of output features.
            rng: Seed or numpy Generator used for initialization.
            id: An identifier for the layer (for logging, set by the network).
        """
        if input_dim <= 0 or output_dim <= 0:
            raise ValueError(f"Layer dimensions must be positive, got ({output_dim}, {input_dim})")
        rng = np.random.default_rng(rng)
        self.id = id
        self.W = rng.uniform(-1.0, 1.0, (output_dim, input_dim))
        self.B = rng.uniform(-1.0, 1.0, (output_dim, 1))
        self.activation: Activation = Linear()
        self._reset_caches()

        logging.debug(
            f"Layer #{self.id} created: input_dim={input_dim}, output_dim={output_dim}, "
            f"weight_shape={self.W.shape}, bias_shape={self.B.shape}"
        )

    def _reset_caches(self):
        self.Z: Optional[np.ndarray] = None
        self.A: Optional[np.ndarray] = None
        self.d_W: Optional[np.ndarray] = None
        self.d_B: Optional[np.ndarray] = None

    @classmethod
    def from_parameters(cls, W: np.ndarray, B: np.ndarray) -> 'Layer':
        """
        Creates a layer from explicit weights and biases.

        Args:
            W: Weight matrix, shape (output_dim, input_dim). Dimensions are inferred from it.
            B: Bias, shape (output_dim, 1). A flat vector of length output_dim is
               accepted and turned into a column.

        Raises:
            DimensionMismatch: If B does not have one row per row of W.
        """
        W = np.array(W, dtype=float)
        B = np.array(B, dtype=float)
        if W.ndim != 2:
            raise ValueError(f"Weights must be a 2D matrix, got shape {W.shape}")
        output_dim = W.shape[0]
        if B.ndim == 1 and B.shape[0] == output_dim:
            B = B.reshape(-1, 1)
        if B.shape != (output_dim, 1):
            raise DimensionMismatch((output_dim, 1), B.shape, operation="bias")

        layer = cls.__new__(cls)
        layer.id = 0
        layer.W = W
        layer.B = B
        layer.activation = Linear()
        layer._reset_caches()
        logging.debug(f"Layer created from parameters: weight_shape={W.shape}, bias_shape={B.shape}")
        return layer

    @property
    def input_dim(self) -> int:
        return self.W.shape[1]

    @property
    def output_dim(self) -> int:
        return self.W.shape[0]

    def get_parameters(self) -> Tuple[np.ndarray, np.ndarray]:
        """Returns copies of the current weights and biases."""
        return self.W.copy(), self.B.copy()

    def set_parameters(self, W: np.ndarray, B: np.ndarray):
        """
        Replaces weights and biases.

        Raises:
            MismatchedDimensions: If either shape differs from the current one.
                                  The layer is left unmodified.
        """
        W = np.array(W, dtype=float)
        B = np.array(B, dtype=float)
        if W.shape != self.W.shape:
            raise MismatchedDimensions(self.W.shape, W.shape)
        if B.shape != self.B.shape:
            raise MismatchedDimensions(self.B.shape, B.shape)
        self.W = W
        self.B = B

    def with_activation(self, activation: Union[str, Activation]) -> 'Layer':
        """Replaces the activation (default is f(z) = z) and returns the layer."""
        if isinstance(activation, str):
            activation = get_activation(activation)
        elif not isinstance(activation, Activation):
            raise TypeError(f"Invalid activation type '{type(activation).__name__}'")
        self.activation = activation
        return self

    def forward(self, inputs: np.ndarray) -> np.ndarray:
        """
        Forward-pass a batch through the layer, caching Z and A.

        Args:
            inputs: Batch of shape (input_dim, batch). A 1D array is a single sample.

        Returns:
            The cached activations A, shape (output_dim, batch).

        Raises:
            DimensionMismatch: If the input feature dimension is not input_dim.
        """
        inputs = np.asarray(inputs)
        if inputs.ndim == 1:
            inputs = inputs.reshape(-1, 1)
        if inputs.ndim != 2 or inputs.shape[0] != self.input_dim:
            raise DimensionMismatch(
                (self.input_dim, inputs.shape[-1] if inputs.ndim else 1),
                inputs.shape,
                layer=self.id,
                operation="forward",
            )

        logging.debug(f"Layer #{self.id} forward - input shape: {inputs.shape}")
        self.Z = self.W @ inputs + self.B
        self.A = self.activation.compute(self.Z)
        return self.A

    def summary(self) -> str:
        """Returns a string summary of the layer's configuration."""
        params = self.W.size + self.B.size
        return (
            f"Layer Summary (id={self.id}):\n"
            f"  Type: Fully Connected\n"
            f"  Input dim: {self.input_dim}\n"
            f"  Output dim: {self.output_dim}\n"
            f"  Activation: {self.activation!r}\n"
            f"  Weights shape: {self.W.shape}\n"
            f"  Bias shape: {self.B.shape}\n"
            f"  Parameters: {params:,} parameters\n"
        )

    def __repr__(self):
        return (f"Layer(id={self.id}, input_dim={self.input_dim}, "
                f"output_dim={self.output_dim}, activation={self.activation!r})")
