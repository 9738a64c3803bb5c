# copyright ############################### #
# This file is part of the Xpinv Package.   #
# Copyright (c) CERN, 2021.                 #
# ######################################### #

import logging

import numpy as np
import scipy.linalg

from .matrix import as_array

log = logging.getLogger(__name__)


class DecompositionError(RuntimeError):
    pass


class NumpyProvider:
    """Singular value decomposition from `numpy.linalg.svd`."""

    name = "numpy"

    def svd(self, a, full_matrices=False):
        return np.linalg.svd(a, full_matrices=full_matrices)

    def __repr__(self):
        return "NumpyProvider()"


class ScipyProvider:
    """Singular value decomposition from `scipy.linalg.svd`.

    Parameters
    ----------
    method : str, optional
        'divide_and_conquer' uses the LAPACK driver gesdd, 'simple' uses
        gesvd. The default is 'divide_and_conquer'.
    """

    drivers = {"simple": "gesvd", "divide_and_conquer": "gesdd"}

    def __init__(self, method="divide_and_conquer"):
        if method not in self.drivers:
            raise ValueError(f"Unknown svd method {method!r}, expected one "
                             f"of {sorted(self.drivers)}")
        self.method = method
        self.name = f"scipy-{self.drivers[method]}"

    def svd(self, a, full_matrices=False):
        return scipy.linalg.svd(a, full_matrices=full_matrices,
                                lapack_driver=self.drivers[self.method],
                                check_finite=True)

    def __repr__(self):
        return f"ScipyProvider(method={self.method!r})"


def get_provider(provider=None):
    """Return a provider object from a name, a callable or a provider."""
    if provider is None or provider == "numpy":
        return NumpyProvider()
    if isinstance(provider, str):
        return ScipyProvider(provider)
    if hasattr(provider, "svd"):
        return provider
    if callable(provider):
        return _CallableProvider(provider)
    raise TypeError(f"Invalid decomposition provider {provider!r}")


class _CallableProvider:
    def __init__(self, func):
        self.func = func
        self.name = getattr(func, "__name__", "callable")

    def svd(self, a, full_matrices=False):
        return self.func(a, full_matrices=full_matrices)


def decompose(matrix, economy=True, provider=None):
    """
    Singular value decomposition `matrix = U @ diag(s) @ Vh`.

    Parameters
    ----------
    matrix : array_like
        Real or complex `m x n` matrix. It is not modified.
    economy : bool, optional
        If True only the first `min(m, n)` columns of U and rows of Vh are
        computed. Otherwise U is `m x m` and Vh is `n x n`.
    provider : object, optional
        Object with a `svd(a, full_matrices)` method, a callable with the
        same signature or one of the names accepted by `get_provider`.

    Returns
    -------
    U, s, Vh
        `s` holds the `min(m, n)` singular values in descending order.

    Raises
    ------
    DecompositionError
        If the provider does not converge, the input is not finite or the
        provider breaks the descending order contract.
    """
    provider = get_provider(provider)
    a = as_array(matrix)
    m, n = a.shape
    k = min(m, n)
    try:
        U, s, Vh = provider.svd(a, full_matrices=not economy)
    except (np.linalg.LinAlgError, ValueError) as err:
        raise DecompositionError(
            f"Singular value decomposition of {m}x{n} matrix failed: {err}"
        ) from err

    s = np.asarray(s, dtype=np.float64)
    if s.shape != (k,):
        raise DecompositionError(
            f"Provider returned {s.shape} singular values, expected ({k},)")
    if np.any(s < 0) or np.any(np.diff(s) > 0):
        # the filter policy takes s[0] as the largest value
        raise DecompositionError(
            "Provider must return non-negative singular values in "
            "descending order")

    log.debug(f"svd {m}x{n} economy={economy} provider={provider!r}: s={s}")
    return U, s, Vh
