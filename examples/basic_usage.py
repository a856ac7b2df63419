import time
import logging
import numpy as np
import matplotlib.pyplot as plt
from sklearn.datasets import make_moons

from clear_backprop import (
    ONE_SAMPLE, SGD, Dataset, Layer, MSE, Network, Sigmoid, Tanh,
)

# --- Plotting Functions ---

def plot_history(history: dict, title: str):
    """Plots the per-epoch training loss."""
    plt.figure(title, figsize=(8, 5))
    plt.plot(history['epoch'], history['loss'], label='Training Loss')
    plt.xlabel('Epoch')
    plt.ylabel('Loss (MSE)')
    plt.title(title)
    plt.legend()
    plt.grid(True, alpha=0.3)
    plt.ylim(bottom=0)
    plt.tight_layout()


def plot_decision_boundary(X: np.ndarray, y_raw: np.ndarray, model: Network):
    """Plots the decision boundary of a trained single-output model.

    Args:
        X: Input features, shape (n_samples, 2), one sample per row.
        y_raw: True integer class labels, shape (n_samples,).
        model: Trained Network instance.
    """
    h = 0.02 # Step size in the mesh

    x_min, x_max = X[:, 0].min() - 0.5, X[:, 0].max() + 0.5
    y_min, y_max = X[:, 1].min() - 0.5, X[:, 1].max() + 0.5
    xx, yy = np.meshgrid(np.arange(x_min, x_max, h),
                         np.arange(y_min, y_max, h))

    # The network expects one sample per column
    mesh_points = np.c_[xx.ravel(), yy.ravel()].T
    Z = (model.predict(mesh_points) >= 0.5).astype(int).reshape(xx.shape)

    plt.figure(figsize=(10, 8))
    plt.contourf(xx, yy, Z, cmap=plt.cm.Spectral, alpha=0.8)
    plt.scatter(X[:, 0], X[:, 1], c=y_raw, cmap=plt.cm.Spectral, edgecolor='k', s=35)
    plt.xlabel("Feature 1")
    plt.ylabel("Feature 2")
    plt.title("Decision Boundary")
    plt.xlim(xx.min(), xx.max())
    plt.ylim(yy.min(), yy.max())
    plt.grid(True, alpha=0.2)


# --- XOR Example ---

def xor_example():
    """Example of training on the XOR problem."""
    logger = logging.getLogger("XORExample")
    logger.info("--- Running XOR Example ---")

    X = np.array([[0, 0], [0, 1], [1, 0], [1, 1]])
    y = np.array([[0], [1], [1], [0]])
    dataset = Dataset(X, y, batch_size=ONE_SAMPLE)

    rng = np.random.default_rng(0)
    network = (Network()
               .add_layer(Layer(2, 3, rng=rng).with_activation(Sigmoid()))
               .add_layer(Layer(3, 3, rng=rng).with_activation(Sigmoid()))
               .add_layer(Layer(3, 1, rng=rng).with_activation(Sigmoid())))
    logger.info(f"XOR Network Summary:\n{network.summary()}")

    optim = SGD(learning_rate=0.3, momentum=0.1)
    history = network.train(dataset, epochs=11000, loss=MSE(), optimizer=optim, log_every=1000)

    predictions = network.predict(X.T)
    for inputs, target, pred in zip(X, y, predictions.T):
        logger.info(f"Input: {inputs}, Target: {target[0]}, Prediction: {pred[0]:.4f} -> {round(pred[0])}")
    logger.info(f"Mean loss over {len(X)} samples: {network.evaluate(dataset, MSE(), split='train')['loss']:.4f}")

    plot_history(history, "XOR Training History")


# --- Make Moons Example ---

def moons_example():
    """Demonstrates training on the 'make_moons' dataset."""
    logger = logging.getLogger("MakeMoonsExample")

    logger.info("Generating make_moons dataset...")
    X_original, y_raw = make_moons(n_samples=300, noise=0.1, random_state=42)

    # The dataset uses the front rows for training, so shuffle once up front
    order = np.random.default_rng(42).permutation(len(X_original))
    X_original, y_raw = X_original[order], y_raw[order]

    dataset = Dataset(X_original, y_raw, train_fraction=0.8, batch_size=32, shuffle=True, rng=1).normalize()

    rng = np.random.default_rng(1)
    network = (Network(learning_rate=0.5)
               .add_layer(Layer(2, 16, rng=rng).with_activation(Tanh()))
               .add_layer(Layer(16, 16, rng=rng).with_activation(Tanh()))
               .add_layer(Layer(16, 1, rng=rng).with_activation(Sigmoid())))
    print(network.summary())

    logger.info("Starting training...")
    start_time = time.time()
    history = network.train(dataset, epochs=2000, loss=MSE(), log_every=100)
    logger.info(f"Training finished. Total training time: {time.time() - start_time:.2f} seconds")

    metrics = network.evaluate(dataset, MSE())
    print(f"\nTest loss over {metrics['samples']} samples: {metrics['loss']:.4f}")

    plot_history(history, "Make Moons Training History")
    plot_decision_boundary(dataset.records, dataset.labels.ravel(), network)


# --- Script Execution ---

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    print("\n" + "="*40)
    print("--- Running XOR Example ---")
    print("="*40)
    xor_example()

    print("\n" + "="*40)
    print("--- Running Make Moons Example ---")
    print("="*40)
    moons_example()

    print("\nDisplaying plots. Close plot windows to exit.")
    plt.show()
