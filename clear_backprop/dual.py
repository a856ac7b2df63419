"""
Forward-mode dual numbers.

A Dual carries a real value together with a fixed-size derivative vector and
propagates that vector through arithmetic using the ordinary differentiation
rules. Duals can be stored in numpy object arrays, so the activation and loss
code in this package runs on them unchanged: numpy dispatches `np.exp`,
`np.tanh`, ... on object arrays to the methods of the same name.

The backpropagation code never depends on this module, its derivatives are
analytic. Duals are useful to cross-check those derivatives.
"""

import math
import numbers
from typing import Callable, Optional

import numpy as np


class Dual:
    """Real value plus a derivative vector (immutable)."""

    __slots__ = ('value', 'derivative')

    # Make numpy scalars defer to our reflected operators instead of
    # broadcasting over the Dual.
    __array_ufunc__ = None

    def __init__(self, value: float, derivative: Optional[np.ndarray] = None):
        object.__setattr__(self, 'value', float(value))
        if derivative is None:
            derivative = np.zeros(0)
        object.__setattr__(self, 'derivative', np.array(derivative, dtype=float))

    def __setattr__(self, name, value):
        raise AttributeError("Dual is immutable")

    @classmethod
    def constant(cls, value: float, size: int = 0) -> 'Dual':
        """A value whose derivative vector is all zero."""
        return cls(value, np.zeros(size))

    @classmethod
    def variable(cls, value: float, index: int, size: int) -> 'Dual':
        """A value seeded as the `index`-th independent variable out of `size`."""
        if not 0 <= index < size:
            raise ValueError(f"Variable index {index} out of range for size {size}")
        derivative = np.zeros(size)
        derivative[index] = 1.0
        return cls(value, derivative)

    @property
    def size(self) -> int:
        return self.derivative.shape[0]

    def __repr__(self):
        return f"Dual(value={self.value:.6g}, derivative={self.derivative})"

    def __float__(self):
        return self.value

    # --- helpers ---

    @staticmethod
    def _lift(other) -> 'Dual':
        if isinstance(other, Dual):
            return other
        if isinstance(other, numbers.Real):
            return Dual(other)
        raise TypeError(f"Unsupported operand type for Dual: {type(other).__name__}")

    def _chain(self, value: float, scale: float) -> 'Dual':
        # f(self) with f'(self.value) == scale
        return Dual(value, self.derivative * scale)

    @staticmethod
    def _blend(a: 'Dual', a_scale: float, b: 'Dual', b_scale: float) -> np.ndarray:
        # a_scale * da + b_scale * db, an empty vector stands for zero
        if a.size == 0:
            return b.derivative * b_scale
        if b.size == 0:
            return a.derivative * a_scale
        if a.size != b.size:
            raise ValueError(f"Dual derivative sizes differ: {a.size} vs {b.size}")
        return a.derivative * a_scale + b.derivative * b_scale

    # --- arithmetic ---

    def __add__(self, other):
        try:
            other = self._lift(other)
        except TypeError:
            return NotImplemented
        return Dual(self.value + other.value, self._blend(self, 1.0, other, 1.0))

    def __radd__(self, other):
        return self + other

    def __sub__(self, other):
        try:
            other = self._lift(other)
        except TypeError:
            return NotImplemented
        return Dual(self.value - other.value, self._blend(self, 1.0, other, -1.0))

    def __rsub__(self, other):
        return (-self) + other

    def __mul__(self, other):
        try:
            other = self._lift(other)
        except TypeError:
            return NotImplemented
        # product rule
        return Dual(self.value * other.value, self._blend(self, other.value, other, self.value))

    def __rmul__(self, other):
        return self * other

    def __truediv__(self, other):
        try:
            other = self._lift(other)
        except TypeError:
            return NotImplemented
        # quotient rule
        inv = 1.0 / other.value
        return Dual(
            self.value * inv,
            self._blend(self, inv, other, -self.value * inv * inv),
        )

    def __rtruediv__(self, other):
        try:
            other = self._lift(other)
        except TypeError:
            return NotImplemented
        return other / self

    def __pow__(self, exponent):
        if isinstance(exponent, Dual):
            # x^y = exp(y log x)
            return (exponent * self.log()).exp()
        if not isinstance(exponent, numbers.Real):
            return NotImplemented
        exponent = float(exponent)
        return self._chain(self.value ** exponent, exponent * self.value ** (exponent - 1.0))

    def __neg__(self):
        return Dual(-self.value, -self.derivative)

    def __pos__(self):
        return self

    def __abs__(self):
        return -self if self.value < 0 else self

    # --- comparisons (by value) ---

    def _other_value(self, other) -> float:
        return other.value if isinstance(other, Dual) else float(other)

    def __eq__(self, other):
        if not isinstance(other, (Dual, numbers.Real)):
            return NotImplemented
        return self.value == self._other_value(other)

    def __hash__(self):
        return hash(self.value)

    def __lt__(self, other):
        return self.value < self._other_value(other)

    def __le__(self, other):
        return self.value <= self._other_value(other)

    def __gt__(self, other):
        return self.value > self._other_value(other)

    def __ge__(self, other):
        return self.value >= self._other_value(other)

    # --- elementary functions, picked up by numpy on object arrays ---

    def exp(self) -> 'Dual':
        e = math.exp(self.value)
        return self._chain(e, e)

    def log(self) -> 'Dual':
        return self._chain(math.log(self.value), 1.0 / self.value)

    def sqrt(self) -> 'Dual':
        r = math.sqrt(self.value)
        return self._chain(r, 0.5 / r)

    def tanh(self) -> 'Dual':
        t = math.tanh(self.value)
        return self._chain(t, 1.0 - t * t)


def duals_from_array(values: np.ndarray) -> np.ndarray:
    """Seed every element of `values` as an independent variable.

    Returns an object array of the same shape where element k (in C order)
    carries the k-th unit derivative vector.
    """
    values = np.asarray(values, dtype=float)
    size = values.size
    flat = [Dual.variable(v, k, size) for k, v in enumerate(values.ravel())]
    result = np.empty(size, dtype=object)
    result[:] = flat
    return result.reshape(values.shape)


def values_of(array: np.ndarray) -> np.ndarray:
    """Real parts of an object array of Duals (plain numbers pass through)."""
    return np.vectorize(float, otypes=[float])(array)


def jacobian_of(fn: Callable[[np.ndarray], np.ndarray], values: np.ndarray) -> np.ndarray:
    """Forward-mode Jacobian of `fn` at `values`.

    Entry [i, j] is d(fn(values).ravel()[i]) / d(values.ravel()[j]).
    """
    values = np.asarray(values, dtype=float)
    outputs = np.asarray(fn(duals_from_array(values)), dtype=object).ravel()
    jacobian = np.zeros((outputs.size, values.size))
    for i, out in enumerate(outputs):
        if isinstance(out, Dual) and out.size:
            jacobian[i] = out.derivative
    return jacobian
