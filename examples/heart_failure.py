import argparse
import logging
import numpy as np
import matplotlib.pyplot as plt

from clear_backprop import Dataset, Layer, MSE, Network, SGD, Sigmoid

# Dataset from https://www.kaggle.com/andrewmvd/heart-failure-clinical-data
DEFAULT_CSV_PATH = 'datasets/heart_failure_clinical_records_dataset.csv'
MODEL_SAVE_PATH = 'heart_failure_model.npz'

# --- Hyperparameters ---
learning_rate = 0.01     # Step size for gradient descent
momentum = 0.9           # SGD momentum
batch_size = 16          # Samples per batch
epochs = 200             # Passes over the training split
train_fraction = 0.8     # Share of rows used for training
hidden_sizes = [20, 10, 5]


def build_network(input_dim: int, rng: np.random.Generator) -> Network:
    """input -> 20 -> 10 -> 5 -> 1 network, sigmoid everywhere."""
    sizes = [input_dim] + hidden_sizes + [1]
    network = Network(learning_rate=learning_rate)
    for n_in, n_out in zip(sizes, sizes[1:]):
        network.add_layer(Layer(n_in, n_out, rng=rng).with_activation(Sigmoid()))
    return network


def main():
    parser = argparse.ArgumentParser(description='Heart failure death event prediction')
    parser.add_argument('--csv', default=DEFAULT_CSV_PATH,
                        help='Path to heart_failure_clinical_records_dataset.csv')
    parser.add_argument('--epochs', type=int, default=epochs, help='Number of training epochs')
    parser.add_argument('--seed', type=int, default=0, help='Seed for weight init and shuffling')
    parser.add_argument('--save', action='store_true', help=f'Save the trained model to {MODEL_SAVE_PATH}')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    dataset = Dataset.from_csv(
        args.csv,
        label_columns='DEATH_EVENT',
        train_fraction=train_fraction,
        batch_size=batch_size,
        shuffle=True,
        rng=args.seed,
    ).normalize()

    network = build_network(dataset.input_dim, np.random.default_rng(args.seed))
    print(network.summary())

    optim = SGD(learning_rate=learning_rate, momentum=momentum)
    history = network.train(dataset, epochs=args.epochs, loss=MSE(), optimizer=optim, log_every=20)

    metrics = network.evaluate(dataset, MSE())
    print(f"Mean loss over {metrics['samples']} test samples: {metrics['loss']:.4f}")

    correct = 0
    for samples, labels in dataset.iter_test():
        correct += int(np.sum(np.round(network.predict(samples)) == labels))
    if metrics['samples']:
        print(f"Test accuracy: {correct / metrics['samples']:.2%}")

    if args.save:
        network.save(MODEL_SAVE_PATH)

    plt.figure("Heart Failure Training History", figsize=(8, 5))
    plt.plot(history['epoch'], history['loss'], label='Training Loss')
    plt.xlabel('Epoch')
    plt.ylabel('Loss (MSE)')
    plt.legend()
    plt.grid(True, alpha=0.3)
    plt.show()


if __name__ == "__main__":
    main()
