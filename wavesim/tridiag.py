from __future__ import annotations

import numpy as np


def solve_tridiagonal(a: np.ndarray, b: np.ndarray, c: np.ndarray, d: np.ndarray) -> np.ndarray:
    """Solve a complex tridiagonal system in place with the Thomas algorithm.

    ``a`` is the sub-diagonal (``a[0]`` unused), ``b`` the diagonal and ``c``
    the super-diagonal (``c[-1]`` unused), all of length ``n``. ``d`` holds
    the right-hand side, either shape ``(n,)`` or ``(n, m)`` for ``m``
    systems sharing the same matrix, and is overwritten with the solution.
    ``b`` is overwritten with the eliminated diagonal.

    No pivoting is performed. A vanishing pivot yields non-finite values
    instead of an error.
    """
    n = b.shape[0]
    if n == 0:
        return d
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        for i in range(1, n):
            w = a[i] / b[i - 1]
            b[i] = b[i] - w * c[i - 1]
            d[i] = d[i] - w * d[i - 1]
        d[n - 1] = d[n - 1] / b[n - 1]
        for i in range(n - 2, -1, -1):
            d[i] = (d[i] - c[i] * d[i + 1]) / b[i]
    return d


def tridiagonal_matvec(a: np.ndarray, b: np.ndarray, c: np.ndarray, x: np.ndarray) -> np.ndarray:
    """Multiply the tridiagonal matrix ``(a, b, c)`` by ``x`` (same layout as :func:`solve_tridiagonal`)."""
    out = b.reshape((-1,) + (1,) * (x.ndim - 1)) * x
    out[1:] += a[1:].reshape((-1,) + (1,) * (x.ndim - 1)) * x[:-1]
    out[:-1] += c[:-1].reshape((-1,) + (1,) * (x.ndim - 1)) * x[1:]
    return out
