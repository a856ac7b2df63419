import numpy as np
from typing import Dict, List, Optional, Tuple, Union
import logging
import time

from .activations import get_activation
from .dataset import BatchIterator, Dataset
from .errors import DimensionMismatch
from .layer import Layer
from .losses import Loss, get_loss
from .optimizer import Gradients, Optimizer

LossLike = Union[str, Loss]


def _resolve_loss(loss: LossLike) -> Loss:
    if isinstance(loss, str):
        return get_loss(loss)
    return loss


class Network:
    """
    A feed-forward neural network: an ordered list of Layers plus a learning rate.

    Layers are added builder-style with `add_layer`, which checks eagerly that
    the new layer's input_dim matches the previous layer's output_dim.
    `forward` checks the chain again because `layers` is a plain list that
    callers may edit directly.

    All batches use the layout (features, batch), one sample per column.
    """

    def __init__(self, learning_rate: float = 0.01, layers: Optional[List[Layer]] = None):
        self.layers: List[Layer] = []
        self.set_learning_rate(learning_rate)
        for layer in layers or []:
            self.add_layer(layer)

        # Training history tracking
        self.training_history: Dict[str, List] = {
            'epoch': [],
            'loss': [],
            'time_per_epoch': [],
        }

    def __len__(self):
        return len(self.layers)

    def add_layer(self, layer: Layer) -> 'Network':
        """
        Appends a layer to the network.

        Raises:
            DimensionMismatch: If the layer does not accept the previous layer's output.
        """
        index = len(self.layers)
        if self.layers and self.layers[-1].output_dim != layer.input_dim:
            raise DimensionMismatch(
                (self.layers[-1].output_dim,), (layer.input_dim,),
                layer=index, operation="add_layer",
            )
        layer.id = index
        self.layers.append(layer)
        logging.info(f"Added layer {index}: {layer.input_dim} -> {layer.output_dim} "
                     f"({layer.activation.__class__.__name__})")
        return self

    def set_learning_rate(self, learning_rate: float) -> 'Network':
        """Sets the gradient descent step size (default 0.01)."""
        if learning_rate <= 0.0:
            raise ValueError(f"Learning rate must be positive, got {learning_rate}")
        self.learning_rate = float(learning_rate)
        return self

    def _check_chain(self):
        if not self.layers:
            raise ValueError("Network has no layers.")
        for n, layer in enumerate(self.layers):
            layer.id = n
            if n > 0 and self.layers[n - 1].output_dim != layer.input_dim:
                raise DimensionMismatch(
                    (self.layers[n - 1].output_dim,), (self.layers[n].input_dim,),
                    layer=n, operation="layer chaining",
                )

    def forward(self, inputs: np.ndarray) -> np.ndarray:
        """
        Performs a forward pass through all layers, caching each layer's Z and A.

        Args:
            inputs: Input batch of shape (input_dim, batch).

        Returns:
            The output layer's activations, shape (output_dim, batch).
        """
        self._check_chain()
        current_output = inputs
        for i, layer in enumerate(self.layers):
            current_output = layer.forward(current_output)
            logging.debug(f"Forward pass - Layer {i} output shape: {current_output.shape}")
        return current_output

    def predict(self, inputs: np.ndarray) -> np.ndarray:
        """Network output for an input batch (a 1D array is a single sample)."""
        return self.forward(inputs)

    def _validate_backprop(self, inputs: np.ndarray, target: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Checks every shape backprop relies on before anything is computed or mutated."""
        self._check_chain()
        for n, layer in enumerate(self.layers):
            if layer.Z is None or layer.A is None:
                raise RuntimeError(f"Layer {n}: Must call forward() before backprop().")

        inputs = np.asarray(inputs)
        if inputs.ndim == 1:
            inputs = inputs.reshape(-1, 1)
        target = np.asarray(target)
        if target.ndim == 1:
            target = target.reshape(-1, 1)

        first, last = self.layers[0], self.layers[-1]
        batch = first.Z.shape[1]
        if inputs.shape != (first.input_dim, batch):
            raise DimensionMismatch((first.input_dim, batch), inputs.shape,
                                    layer=0, operation="backprop input")
        for n, layer in enumerate(self.layers):
            if layer.Z.shape != (layer.output_dim, batch):
                raise DimensionMismatch((layer.output_dim, batch), layer.Z.shape,
                                        layer=n, operation="cached forward state")
        if target.shape != last.A.shape:
            raise DimensionMismatch(last.A.shape, target.shape,
                                    layer=len(self.layers) - 1, operation="loss")
        return inputs, target

    def compute_gradients(self, inputs: np.ndarray, target: np.ndarray, loss: LossLike) -> Gradients:
        """
        Backpropagates the loss through the cached forward state.

        No layer is modified, so every step reads the pre-update weights of the
        next layer.

        Returns:
            A list with one (d_W, d_B) pair per layer, in layer order.
        """
        loss = _resolve_loss(loss)
        inputs, target = self._validate_backprop(inputs, target)
        num_layers = len(self.layers)
        last = self.layers[-1]

        # dL/dZ of the output layer: activation Jacobian times dL/dA, per sample
        dz = last.activation.contract(last.Z, loss.derivative(last.A, target))

        gradients: Gradients = [None] * num_layers
        for n in reversed(range(num_layers)):
            layer = self.layers[n]
            layer_input = inputs if n == 0 else self.layers[n - 1].A

            if n != num_layers - 1:
                next_layer = self.layers[n + 1]
                dz = layer.activation.contract(layer.Z, next_layer.W.T @ dz)

            d_w = dz @ layer_input.T
            d_b = np.sum(dz, axis=1, keepdims=True)
            gradients[n] = (d_w, d_b)
            logging.debug(f"Backward pass - Layer {n}: dW shape {d_w.shape}, dB shape {d_b.shape}")

        return gradients

    def backprop(self, inputs: np.ndarray, target: np.ndarray, loss: LossLike = 'mse',
                 optimizer: Optional[Optimizer] = None):
        """
        One backward pass and one in-place parameter update of every layer.

        Uses the Z/A values cached by the most recent forward call. All gradients
        are computed before any parameter changes, so a shape error leaves the
        network untouched.

        Args:
            inputs: The batch given to the last forward call, shape (input_dim, batch).
            target: Desired outputs, shape (output_dim, batch).
            loss: Loss instance or name.
            optimizer: Update rule. Defaults to plain gradient descent with the
                       network's learning rate.

        Raises:
            DimensionMismatch: Naming the layer whose shapes do not fit.
            RuntimeError: If forward has not been called.
        """
        gradients = self.compute_gradients(inputs, target, loss)

        for layer, (d_w, d_b) in zip(self.layers, gradients):
            layer.d_W = d_w
            layer.d_B = d_b

        if optimizer is not None:
            optimizer.step(self.layers, gradients)
        else:
            for layer, (d_w, d_b) in zip(self.layers, gradients):
                layer.W = layer.W - self.learning_rate * d_w
                layer.B = layer.B - self.learning_rate * d_b

    def compute_loss(self, inputs: np.ndarray, target: np.ndarray, loss: LossLike = 'mse') -> float:
        """Forward pass followed by the scalar loss against `target`."""
        return _resolve_loss(loss).compute(self.forward(inputs), target)

    def train_batch(self, inputs: np.ndarray, target: np.ndarray, loss: LossLike = 'mse',
                    optimizer: Optional[Optimizer] = None) -> float:
        """Forward, loss and backprop on one batch. Returns the loss before the update."""
        loss = _resolve_loss(loss)
        target = np.asarray(target)
        if target.ndim == 1:
            target = target.reshape(-1, 1)
        outputs = self.forward(inputs)
        batch_loss = loss.compute(outputs, target)
        self.backprop(inputs, target, loss, optimizer)
        return batch_loss

    def train(
        self,
        dataset: Dataset,
        epochs: int = 100,
        loss: LossLike = 'mse',
        optimizer: Optional[Optimizer] = None,
        verbose: bool = True,
        log_every: int = 10,
    ) -> Dict[str, List]:
        """
        Trains the network on the training split of `dataset`.

        Args:
            dataset: Source of (inputs, labels) batches.
            epochs: Number of passes over the training split.
            loss: Loss instance or name.
            optimizer: Update rule, plain gradient descent if None.
            verbose: Whether to print training progress.
            log_every: Print progress every `log_every` epochs.

        Returns:
            The training history (epoch, loss, time_per_epoch).
        """
        loss = _resolve_loss(loss)
        self._check_chain()
        if dataset.input_dim != self.layers[0].input_dim:
            raise DimensionMismatch((self.layers[0].input_dim,), (dataset.input_dim,),
                                    layer=0, operation="dataset features")
        train_iter = dataset.iter_train()
        if train_iter.num_samples == 0:
            raise ValueError("Dataset has no training samples.")

        for epoch in range(epochs):
            epoch_start_time = time.time()
            epoch_loss = 0.0

            for samples, labels in train_iter:
                batch_loss = self.train_batch(samples, labels, loss, optimizer)
                epoch_loss += batch_loss * samples.shape[1]  # weight by batch size

            epoch_loss /= train_iter.num_samples
            epoch_time = time.time() - epoch_start_time
            if np.isnan(epoch_loss) or np.isinf(epoch_loss):
                logging.warning(f"Epoch {epoch + 1}: loss is {epoch_loss}, check learning rate and inputs.")

            self.training_history['epoch'].append(epoch)
            self.training_history['loss'].append(epoch_loss)
            self.training_history['time_per_epoch'].append(epoch_time)

            if verbose and (epoch % log_every == 0 or epoch == epochs - 1):
                print(f"Epoch {epoch+1}/{epochs} - loss: {epoch_loss:.5f} - time: {epoch_time:.2f}s")

        logging.info("Training finished.")
        return self.training_history

    def evaluate(self, dataset: Dataset, loss: LossLike = 'mse', split: str = 'test') -> Dict[str, float]:
        """
        Mean loss over a dataset split ('test' or 'train'), weighted by batch size.

        Returns:
            A dictionary with 'loss', 'worst_sample_loss' and 'samples'.
        """
        loss = _resolve_loss(loss)
        if split == 'test':
            batches: BatchIterator = dataset.iter_test()
        elif split == 'train':
            batches = dataset.iter_train()
        else:
            raise ValueError(f"Unknown split '{split}', expected 'test' or 'train'")

        if batches.num_samples == 0:
            logging.warning(f"Dataset {split} split is empty, nothing to evaluate.")
            return {'loss': float('nan'), 'worst_sample_loss': float('nan'), 'samples': 0}

        total_loss = 0.0
        worst = 0.0
        for samples, labels in batches:
            outputs = self.forward(samples)
            total_loss += loss.compute(outputs, labels) * samples.shape[1]
            worst = max(worst, float(np.max(loss.sample_losses(outputs, labels))))
        return {
            'loss': total_loss / batches.num_samples,
            'worst_sample_loss': worst,
            'samples': batches.num_samples,
        }

    def save(self, filename: str):
        """
        Saves weights, biases, activations and learning rate to a compressed .npz file.

        Args:
            filename: Path to the file. '.npz' is appended if missing.
        """
        self._check_chain()
        save_dict = {
            'learning_rate': np.array(self.learning_rate),
            'activation_names': np.array([layer.activation.name for layer in self.layers]),
            'activation_slopes': np.array([layer.activation.get_config().get('slope', np.nan)
                                           for layer in self.layers], dtype=float),
        }
        for i, layer in enumerate(self.layers):
            save_dict[f'layer_{i}_W'] = layer.W
            save_dict[f'layer_{i}_B'] = layer.B

        if not filename.endswith('.npz'):
            filename += '.npz'
        np.savez_compressed(filename, **save_dict)
        logging.info(f"Network saved to {filename}")

    @classmethod
    def load(cls, filename: str) -> 'Network':
        """
        Creates a network from a file written by `save`.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file is incomplete.
        """
        with np.load(filename) as data:
            try:
                names = [str(name) for name in data['activation_names']]
                slopes = data['activation_slopes']
                network = cls(learning_rate=float(data['learning_rate']))
                for i, name in enumerate(names):
                    kwargs = {} if np.isnan(slopes[i]) else {'slope': float(slopes[i])}
                    layer = Layer.from_parameters(data[f'layer_{i}_W'], data[f'layer_{i}_B'])
                    network.add_layer(layer.with_activation(get_activation(name, **kwargs)))
            except KeyError as e:
                raise ValueError(f"Incompatible or incomplete network file: {filename}") from e
        logging.info(f"Network loaded from {filename}")
        return network

    def summary(self) -> str:
        """
        Generates a text summary of the network architecture and parameters.
        """
        summary_str = "\n" + "="*50 + "\n"
        summary_str += "Neural Network Summary\n"
        summary_str += "="*50 + "\n"
        total_params = 0
        for layer in self.layers:
            total_params += layer.W.size + layer.B.size
            summary_str += layer.summary()
            summary_str += "-"*50 + "\n"
        summary_str += f"Learning rate: {self.learning_rate}\n"
        summary_str += f"Total Parameters: {total_params}\n"
        summary_str += "="*50 + "\n"
        return summary_str
