import numpy as np
import pytest

from clear_backprop.activations import (
    ACTIVATION_FUNCTIONS,
    LeakyReLU,
    Linear,
    ReLU,
    Sigmoid,
    Softmax,
    Tanh,
    get_activation,
    jacobian_from_diagonals,
)
from clear_backprop.dual import jacobian_of

ALL_ACTIVATIONS = [ReLU(), Linear(), Sigmoid(), LeakyReLU(0.1), Tanh(), Softmax()]
ELEMENTWISE = [ReLU(), Linear(), Sigmoid(), LeakyReLU(0.1), Tanh()]


def batch_away_from_zero(rng, out_dim=4, batch=3):
    # keep |z| > 0.1 so finite differences never straddle the ReLU kink
    z = rng.uniform(0.1, 2.0, (out_dim, batch))
    return z * rng.choice([-1.0, 1.0], (out_dim, batch))


@pytest.mark.parametrize("activation", ALL_ACTIVATIONS, ids=repr)
def test_compute_keeps_shape(activation, rng):
    z = batch_away_from_zero(rng)
    assert activation.compute(z).shape == z.shape


@pytest.mark.parametrize("activation", ALL_ACTIVATIONS, ids=repr)
def test_derivative_shape(activation, rng):
    z = batch_away_from_zero(rng, out_dim=5, batch=2)
    assert activation.derivative(z).shape == (2, 5, 5)


@pytest.mark.parametrize("activation", ALL_ACTIVATIONS, ids=repr)
def test_derivative_matches_finite_differences(activation, rng, numerical_jacobian):
    z = batch_away_from_zero(rng)
    jac = activation.derivative(z)
    for b in range(z.shape[1]):
        expected = numerical_jacobian(lambda col: activation.compute(col.reshape(-1, 1)), z[:, b])
        np.testing.assert_allclose(jac[b], expected, atol=1e-6)


@pytest.mark.parametrize("activation", ALL_ACTIVATIONS, ids=repr)
def test_derivative_matches_forward_mode_duals(activation, rng):
    z = batch_away_from_zero(rng)
    jac = activation.derivative(z)
    for b in range(z.shape[1]):
        column = z[:, b].reshape(-1, 1)
        expected = jacobian_of(activation.compute, column)
        np.testing.assert_allclose(jac[b], expected, atol=1e-12)


@pytest.mark.parametrize("activation", ELEMENTWISE, ids=repr)
def test_elementwise_jacobian_is_exactly_diagonal(activation, rng):
    jac = activation.derivative(batch_away_from_zero(rng))
    off_diagonal = ~np.eye(jac.shape[1], dtype=bool)
    for sample in jac:
        assert np.all(sample[off_diagonal] == 0.0)


@pytest.mark.parametrize("activation", ALL_ACTIVATIONS, ids=repr)
def test_contract_equals_full_jacobian_product(activation, rng):
    z = batch_away_from_zero(rng)
    gradient = rng.normal(size=z.shape)
    expected = np.einsum('bij,jb->ib', activation.derivative(z), gradient)
    np.testing.assert_allclose(activation.contract(z, gradient), expected, atol=1e-12)


def test_relu_boundary_is_the_else_branch():
    z = np.array([[0.0, -1.0, 2.0]])
    np.testing.assert_array_equal(ReLU().compute(z), [[0.0, 0.0, 2.0]])
    np.testing.assert_array_equal(ReLU().derivative(z)[:, 0, 0], [0.0, 0.0, 1.0])


def test_leaky_relu_slope():
    z = np.array([[-2.0, 0.0, 3.0]])
    leaky = LeakyReLU(0.2)
    np.testing.assert_allclose(leaky.compute(z), [[-0.4, 0.0, 3.0]])
    np.testing.assert_allclose(leaky.derivative(z)[:, 0, 0], [0.2, 0.2, 1.0])


def test_leaky_relu_with_zero_slope_is_relu(rng):
    z = batch_away_from_zero(rng)
    np.testing.assert_array_equal(LeakyReLU(0.0).compute(z), ReLU().compute(z))


def test_tanh_matches_exponential_formula():
    z = np.linspace(-3, 3, 7).reshape(-1, 1)
    expected = (np.exp(2 * z) - 1) / (np.exp(2 * z) + 1)
    np.testing.assert_allclose(Tanh().compute(z), expected, atol=1e-12)


def test_sigmoid_extreme_inputs_do_not_produce_nan():
    out = Sigmoid().compute(np.array([[-1000.0], [1000.0]]))
    np.testing.assert_array_equal(out, [[0.0], [1.0]])


def test_softmax_columns_sum_to_one(rng):
    s = Softmax().compute(rng.normal(size=(6, 4)) * 5)
    np.testing.assert_allclose(s.sum(axis=0), np.ones(4))


def test_softmax_is_shift_invariant(rng):
    z = rng.normal(size=(3, 2))
    np.testing.assert_allclose(Softmax().compute(z), Softmax().compute(z + 500.0))


def test_softmax_large_inputs_are_stable():
    s = Softmax().compute(np.array([[1000.0], [1000.0]]))
    np.testing.assert_allclose(s, [[0.5], [0.5]])


def test_softmax_derivative_is_diag_minus_outer(rng):
    z = rng.normal(size=(4, 3))
    s = Softmax().compute(z)
    jac = Softmax().derivative(z)
    for b in range(3):
        expected = np.diag(s[:, b]) - np.outer(s[:, b], s[:, b])
        np.testing.assert_allclose(jac[b], expected, atol=1e-15)
        np.testing.assert_allclose(jac[b], jac[b].T)


def test_softmax_single_sample_vector():
    s = Softmax().compute(np.array([1.0, 2.0, 3.0]))
    assert s.shape == (3,)
    assert s.sum() == pytest.approx(1.0)


def test_jacobian_from_diagonals():
    diag = np.array([[1.0, 4.0], [2.0, 5.0]])
    jac = jacobian_from_diagonals(diag)
    np.testing.assert_array_equal(jac[0], [[1.0, 0.0], [0.0, 2.0]])
    np.testing.assert_array_equal(jac[1], [[4.0, 0.0], [0.0, 5.0]])


def test_get_activation_by_name():
    assert isinstance(get_activation('ReLU'), ReLU)
    assert get_activation('leaky_relu', slope=0.3) == LeakyReLU(0.3)
    assert set(ACTIVATION_FUNCTIONS) == {'relu', 'linear', 'sigmoid', 'leaky_relu', 'tanh', 'softmax'}


def test_get_activation_unknown_name():
    with pytest.raises(ValueError, match="Unknown activation"):
        get_activation('swish')
