import numpy as np
import pytest

from clear_backprop.activations import LeakyReLU, Sigmoid
from clear_backprop.dataset import FULL_BATCH, Dataset
from clear_backprop.errors import DimensionMismatch
from clear_backprop.layer import Layer
from clear_backprop.losses import MSE
from clear_backprop.network import Network

XOR_INPUTS = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
XOR_LABELS = np.array([[0.0], [1.0], [1.0], [0.0]])


def make_net(rng, sizes, activations, learning_rate=0.1):
    net = Network(learning_rate=learning_rate)
    for (n_in, n_out), activation in zip(zip(sizes, sizes[1:]), activations):
        net.add_layer(Layer(n_in, n_out, rng=rng).with_activation(activation))
    return net


def network_loss(net, inputs, target, loss=MSE()):
    return loss.compute(net.forward(inputs), target)


def test_identity_network_returns_input(rng):
    net = Network().add_layer(Layer.from_parameters(np.eye(3), np.zeros((3, 1))))
    x = rng.normal(size=(3, 5))
    np.testing.assert_array_equal(net.forward(x), x)


def test_forward_chains_layers(rng):
    net = make_net(rng, [2, 3, 1], ['tanh', 'sigmoid'])
    x = rng.normal(size=(2, 4))
    first, second = net.layers
    expected = second.activation.compute(second.W @ np.tanh(first.W @ x + first.B) + second.B)
    np.testing.assert_allclose(net.forward(x), expected)
    np.testing.assert_allclose(first.A, np.tanh(first.Z))


def test_add_layer_rejects_broken_chain(rng):
    net = Network().add_layer(Layer(2, 3, rng=rng))
    with pytest.raises(DimensionMismatch) as excinfo:
        net.add_layer(Layer(4, 1, rng=rng))
    assert excinfo.value.layer == 1
    assert excinfo.value.expected == (3,)
    assert excinfo.value.found == (4,)
    assert len(net) == 1


def test_forward_rejects_broken_chain_added_directly(rng):
    net = Network().add_layer(Layer(2, 3, rng=rng))
    net.layers.append(Layer(4, 1, rng=rng))
    with pytest.raises(DimensionMismatch) as excinfo:
        net.forward(np.ones((2, 1)))
    assert excinfo.value.layer == 1


def test_forward_on_empty_network():
    with pytest.raises(ValueError):
        Network().forward(np.ones((1, 1)))


def test_invalid_learning_rate():
    with pytest.raises(ValueError):
        Network(learning_rate=0.0)


def test_builder_methods_chain(rng):
    net = Network().set_learning_rate(0.5).add_layer(Layer(2, 2, rng=rng))
    assert net.learning_rate == 0.5
    assert len(net) == 1


@pytest.mark.parametrize("activations", [
    ['sigmoid', 'sigmoid', 'sigmoid'],
    ['tanh', LeakyReLU(0.1), 'linear'],
    ['relu', 'tanh', 'softmax'],
])
def test_gradients_match_finite_differences(rng, activations):
    net = make_net(rng, [3, 4, 4, 3], activations)
    x = rng.normal(size=(3, 5))
    target = rng.uniform(size=(3, 5))

    net.forward(x)
    gradients = net.compute_gradients(x, target, MSE())

    eps = 1e-6
    for layer, (d_w, d_b) in zip(net.layers, gradients):
        assert d_w.shape == layer.W.shape
        assert d_b.shape == layer.B.shape
        for param, grad in ((layer.W, d_w), (layer.B, d_b)):
            numeric = np.zeros_like(param)
            for idx in np.ndindex(param.shape):
                original = param[idx]
                param[idx] = original + eps
                plus = network_loss(net, x, target)
                param[idx] = original - eps
                minus = network_loss(net, x, target)
                param[idx] = original
                numeric[idx] = (plus - minus) / (2 * eps)
            np.testing.assert_allclose(grad, numeric, atol=1e-7)


def test_backprop_uses_pre_update_weights(rng):
    net = make_net(rng, [2, 3, 2, 1], ['sigmoid', 'tanh', 'sigmoid'], learning_rate=0.7)
    x = rng.normal(size=(2, 6))
    target = rng.uniform(size=(1, 6))

    net.forward(x)
    before = [layer.get_parameters() for layer in net.layers]
    gradients = net.compute_gradients(x, target, MSE())
    net.backprop(x, target, MSE())

    for layer, (W, B), (d_w, d_b) in zip(net.layers, before, gradients):
        np.testing.assert_allclose(layer.W, W - 0.7 * d_w)
        np.testing.assert_allclose(layer.B, B - 0.7 * d_b)
        np.testing.assert_allclose(layer.d_W, d_w)
        np.testing.assert_allclose(layer.d_B, d_b)


def test_backprop_single_step_reduces_loss(rng):
    net = make_net(rng, [2, 4, 1], ['tanh', 'linear'], learning_rate=0.01)
    x = rng.normal(size=(2, 8))
    target = rng.normal(size=(1, 8))
    before = network_loss(net, x, target)
    net.forward(x)
    net.backprop(x, target, 'mse')
    assert network_loss(net, x, target) < before


def test_backprop_with_bad_target_commits_nothing(rng):
    net = make_net(rng, [2, 3, 1], ['sigmoid', 'sigmoid'])
    x = rng.normal(size=(2, 4))
    net.forward(x)
    before = [layer.get_parameters() for layer in net.layers]
    with pytest.raises(DimensionMismatch) as excinfo:
        net.backprop(x, np.zeros((2, 4)), MSE())
    assert excinfo.value.layer == 1
    for layer, (W, B) in zip(net.layers, before):
        np.testing.assert_array_equal(layer.W, W)
        np.testing.assert_array_equal(layer.B, B)


def test_forward_renumbers_layers_inserted_through_the_list(rng):
    net = make_net(rng, [3, 1], ['sigmoid'])
    inserted = Layer(2, 3, rng=rng)
    inserted.id = 7
    net.layers.insert(0, inserted)
    net.forward(rng.normal(size=(2, 4)))
    assert [layer.id for layer in net.layers] == [0, 1]


def test_backprop_with_input_not_matching_forward(rng):
    net = make_net(rng, [2, 3, 1], ['sigmoid', 'sigmoid'])
    net.forward(rng.normal(size=(2, 4)))
    with pytest.raises(DimensionMismatch) as excinfo:
        net.backprop(rng.normal(size=(2, 5)), np.zeros((1, 5)), MSE())
    assert excinfo.value.layer == 0


def test_backprop_before_forward(rng):
    net = make_net(rng, [2, 1], ['sigmoid'])
    with pytest.raises(RuntimeError):
        net.backprop(np.zeros((2, 1)), np.zeros((1, 1)), MSE())


def train_full_batch(net, epochs):
    dataset = Dataset(XOR_INPUTS, XOR_LABELS, batch_size=FULL_BATCH)
    history = net.train(dataset, epochs=epochs, loss=MSE(), verbose=False)
    return np.array(history['loss'])


def assert_non_increasing(losses, start=0, tol=1e-12):
    steps = np.diff(losses[start:])
    assert np.all(steps <= tol), f"loss increased by {steps.max():.3g}"


def test_xor_training_learns_truth_table():
    rng = np.random.default_rng(1)
    net = Network(learning_rate=0.5)
    net.add_layer(Layer(2, 2, rng=rng).with_activation(Sigmoid()))
    net.add_layer(Layer(2, 1, rng=rng).with_activation(Sigmoid()))

    losses = train_full_batch(net, epochs=5000)
    assert_non_increasing(losses, start=10)

    outputs = net.predict(XOR_INPUTS.T)
    np.testing.assert_array_equal(np.round(outputs), XOR_LABELS.T)


def test_train_rejects_dataset_with_wrong_features(rng):
    net = make_net(rng, [3, 1], ['sigmoid'])
    with pytest.raises(DimensionMismatch):
        net.train(Dataset(XOR_INPUTS, XOR_LABELS), epochs=1, verbose=False)


def test_train_records_history(rng):
    net = make_net(rng, [2, 2, 1], ['sigmoid', 'sigmoid'])
    history = net.train(Dataset(XOR_INPUTS, XOR_LABELS, batch_size=2), epochs=3, verbose=False)
    assert history['epoch'] == [0, 1, 2]
    assert len(history['loss']) == 3
    assert len(history['time_per_epoch']) == 3


def test_evaluate_on_test_split(rng):
    net = Network().add_layer(Layer.from_parameters(np.eye(2), np.zeros((2, 1))))
    records = rng.normal(size=(10, 2))
    dataset = Dataset(records, records + 1.0, train_fraction=0.6, batch_size=3)
    metrics = net.evaluate(dataset)
    assert metrics['samples'] == 4
    assert metrics['loss'] == pytest.approx(1.0)
    assert metrics['worst_sample_loss'] == pytest.approx(1.0)


def test_evaluate_reports_worst_sample():
    net = Network().add_layer(Layer.from_parameters(np.eye(2), np.zeros((2, 1))))
    records = np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 2.0]])
    labels = np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 5.0]])
    metrics = net.evaluate(Dataset(records, labels, batch_size=2), split='train')
    assert metrics['samples'] == 3
    assert metrics['loss'] == pytest.approx(1.5)
    assert metrics['worst_sample_loss'] == pytest.approx(4.5)


def test_save_and_load_round_trip(rng, tmp_path):
    net = make_net(rng, [3, 4, 2], [LeakyReLU(0.2), 'softmax'], learning_rate=0.25)
    path = str(tmp_path / "net")
    net.save(path)
    loaded = Network.load(path + ".npz")

    assert loaded.learning_rate == 0.25
    assert loaded.layers[0].activation == LeakyReLU(0.2)
    x = rng.normal(size=(3, 2))
    np.testing.assert_allclose(loaded.forward(x), net.forward(x))


def test_summary_lists_parameters(rng):
    net = make_net(rng, [2, 3, 1], ['relu', 'sigmoid'])
    summary = net.summary()
    assert "Total Parameters: 13" in summary
