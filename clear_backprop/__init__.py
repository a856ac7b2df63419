"""Feed-forward neural networks trained with hand-derived backpropagation."""

from .activations import (
    ACTIVATION_FUNCTIONS,
    Activation,
    LeakyReLU,
    Linear,
    ReLU,
    Sigmoid,
    Softmax,
    Tanh,
    get_activation,
)
from .dataset import FULL_BATCH, ONE_SAMPLE, BatchIterator, Dataset
from .dual import Dual
from .errors import DimensionMismatch, MismatchedDimensions, ShapeError
from .layer import Layer
from .losses import MSE, Loss, get_loss
from .network import Network
from .optimizer import SGD, Optimizer

__version__ = "0.1.0"
