import numpy as np
import pytest


def _numerical_jacobian(fn, z, eps=1e-6):
    """Central difference Jacobian of a vector function at the vector z."""
    z = np.asarray(z, dtype=float)
    out_dim = np.asarray(fn(z)).size
    jac = np.zeros((out_dim, z.size))
    for j in range(z.size):
        step = np.zeros_like(z)
        step.flat[j] = eps
        jac[:, j] = (np.ravel(fn(z + step)) - np.ravel(fn(z - step))) / (2 * eps)
    return jac


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def numerical_jacobian():
    return _numerical_jacobian
