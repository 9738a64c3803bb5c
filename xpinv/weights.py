# copyright ############################### #
# This file is part of the Xpinv Package.   #
# Copyright (c) CERN, 2021.                 #
# ######################################### #

import logging

import numpy as np

log = logging.getLogger(__name__)


class WeightTable:
    """
    Lookup table of weights by name, e.g. monitor or corrector weights.

    The table is filled once and then only read, so the same instance can
    be shared by all the pages of a run.

    Parameters
    ----------
    names : sequence of str
        Names of the rows or columns the weights refer to.
    values : sequence of float
        Weight for each name.
    source : str, optional
        Description of where the table comes from, used in warnings.
    """

    def __init__(self, names, values, source=None):
        names = np.array(names, dtype=str)
        values = np.array(values, dtype=np.float64)
        if names.shape != values.shape or names.ndim != 1:
            raise ValueError("`names` and `values` must be 1D and have the "
                             "same length")
        if len(names) == 0:
            raise ValueError("No rows in weights table")
        self.names = names
        self.values = values
        self.source = source or "weights table"
        # first occurrence wins, as an exact match scan would do
        self._lookup = {}
        for ii, nn in enumerate(names):
            self._lookup.setdefault(nn, ii)

    @classmethod
    def from_columns(cls, data, name="name", value="value", source=None):
        """Build the table from a mapping of columns."""
        for col in (name, value):
            if col not in data:
                raise KeyError(f"Column `{col}` not found in weights data")
        return cls(data[name], data[value], source=source)

    def __len__(self):
        return len(self.names)

    def __contains__(self, name):
        return name in self._lookup

    def __getitem__(self, name):
        return self.values[self._lookup[name]]

    def resolve(self, labels):
        """Weight vector for `labels`, 1.0 where a label is not in the table."""
        out = np.ones(len(labels))
        for ii, label in enumerate(labels):
            idx = self._lookup.get(label)
            if idx is None:
                log.warning(f"Name {label} doesn't exist in {self.source}.")
            else:
                out[ii] = self.values[idx]
        return out

    def __repr__(self):
        return f"<WeightTable {len(self)} rows from {self.source}>"


def resolve_weights(weights, labels):
    """Turn `weights` (None, WeightTable or array) into a vector for `labels`."""
    if weights is None:
        return None
    if isinstance(weights, WeightTable):
        return weights.resolve(labels)
    weights = np.array(weights, dtype=np.float64)
    if weights.shape != (len(labels),):
        raise ValueError(f"Weight vector has shape {weights.shape}, "
                         f"expected ({len(labels)},)")
    return weights


def _check_length(weights, size, what):
    weights = np.asarray(weights)
    if weights.shape != (size,):
        raise ValueError(f"{what} weights have shape {weights.shape}, "
                         f"expected ({size},)")
    return weights


def _float_copy(matrix):
    matrix = np.asarray(matrix)
    return np.array(matrix, dtype=np.result_type(matrix.dtype, np.float64))


def apply_weights(matrix, row_weights=None, col_weights=None):
    """Return `diag(row_weights) @ matrix @ diag(col_weights)` as a new array."""
    out = _float_copy(matrix)
    m, n = out.shape
    if row_weights is not None:
        out *= _check_length(row_weights, m, "Row")[:, None]
    if col_weights is not None:
        out *= _check_length(col_weights, n, "Column")[None, :]
    return out


def unapply_weights(inverse, row_weights=None, col_weights=None):
    """
    Post-process the inverse of a weighted matrix.

    The weighted problem is `w A x = w y`, so the returned operator is
    `(w A)^+ w`: the columns of the `n x m` inverse, which correspond to the
    rows of the original matrix, are scaled by the row weights. Column
    weights act only on the matrix before decomposition and are left out
    here.
    """
    out = _float_copy(inverse)
    if row_weights is not None:
        out *= _check_length(row_weights, out.shape[1], "Row")[None, :]
    return out
