# copyright ############################### #
# This file is part of the Xpinv Package.   #
# Copyright (c) CERN, 2021.                 #
# ######################################### #

import numpy as np

from .weights import unapply_weights

AUXILIARY_MODES = ("multiply", "invert")


class ShapeMismatchError(ValueError):
    pass


def _truncate(u, factors, vh):
    factors = np.asarray(factors)
    k = len(factors)
    return u[:, :k], factors, vh[:k, :]


def assemble_inverse(u, inverse_singular_values, vh, row_weights=None,
                     col_weights=None, auxiliary=None,
                     auxiliary_mode="multiply"):
    """
    Pseudoinverse `Vh^H @ diag(inverse_singular_values) @ U^H`.

    Parameters
    ----------
    u, vh : array_like
        Singular vectors of the (weighted) `m x n` matrix, economy or full.
    inverse_singular_values : array_like
        Factor of each singular triplet, 0 for the filtered ones.
    row_weights : array_like, optional
        Row weights applied to the matrix before decomposition. The result
        is then `(w A)^+ w`.
    col_weights : array_like, optional
        Column weights applied before decomposition; not re-applied.
    auxiliary : array_like, optional
        Matrix `M` composed with the inverse.
    auxiliary_mode : str, optional
        'multiply' returns `Rinv @ M`, 'invert' returns `M @ Rinv`.

    Returns
    -------
    numpy.ndarray
        `n x m` inverse, or the composed product.
    """
    if auxiliary_mode not in AUXILIARY_MODES:
        raise ValueError(f"Invalid auxiliary mode {auxiliary_mode!r}, "
                         f"expected one of {AUXILIARY_MODES}")
    u, factors, vh = _truncate(np.asarray(u), inverse_singular_values,
                               np.asarray(vh))

    # conj() is a no-op for real input
    rinv = (vh.conj().T * factors[None, :]) @ u.conj().T
    rinv = unapply_weights(rinv, row_weights, col_weights)

    if auxiliary is None:
        return rinv
    return compose(rinv, auxiliary, auxiliary_mode)


def compose(rinv, auxiliary, auxiliary_mode="multiply"):
    """Product of the inverse with an auxiliary matrix, checking shapes."""
    aux = np.asarray(auxiliary)
    if aux.ndim != 2:
        raise ShapeMismatchError(f"Auxiliary matrix must be 2D, got shape "
                                 f"{aux.shape}")
    if auxiliary_mode == "multiply":
        if aux.shape[0] != rinv.shape[1]:
            raise ShapeMismatchError(
                "Unable to multiply inverse by auxiliary matrix: inverse is "
                f"{rinv.shape[0]}x{rinv.shape[1]}, auxiliary is "
                f"{aux.shape[0]}x{aux.shape[1]}.")
        return rinv @ aux
    if aux.shape[1] != rinv.shape[0]:
        raise ShapeMismatchError(
            "Unable to multiply auxiliary matrix by inverse: auxiliary is "
            f"{aux.shape[0]}x{aux.shape[1]}, inverse is "
            f"{rinv.shape[0]}x{rinv.shape[1]}.")
    return aux @ rinv


def reconstruct(u, used_singular_values, vh):
    """Matrix `U @ diag(used_singular_values) @ Vh` of the retained triplets."""
    u, used, vh = _truncate(np.asarray(u), used_singular_values,
                            np.asarray(vh))
    return (u * used[None, :]) @ vh
