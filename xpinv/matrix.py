# copyright ############################### #
# This file is part of the Xpinv Package.   #
# Copyright (c) CERN, 2021.                 #
# ######################################### #

from enum import Enum

import numpy as np


class MatrixLayout(Enum):
    ROW = "row"
    COLUMN = "column"

    @classmethod
    def of(cls, array):
        if array.flags.f_contiguous and not array.flags.c_contiguous:
            return cls.COLUMN
        return cls.ROW


def as_array(data, dtype=None):
    """Return a 2D float64 or complex128 copy of `data`.

    Integer and float input is promoted to float64, any complex input to
    complex128. The result never aliases `data`.
    """
    if isinstance(data, Matrix):
        data = data.data
    arr = np.array(data, dtype=dtype, copy=True)
    if arr.ndim != 2:
        raise ValueError(f"Expected a 2D matrix, got shape {arr.shape}")
    if dtype is None:
        if np.iscomplexobj(arr):
            arr = arr.astype(np.complex128, copy=False)
        else:
            arr = arr.astype(np.float64, copy=False)
    return arr


def to_layout(array, layout):
    """Copy of `array` stored in the given memory layout."""
    layout = MatrixLayout(layout)
    if layout is MatrixLayout.COLUMN:
        return np.array(array, order="F", copy=True)
    return np.array(array, order="C", copy=True)


class Matrix:
    """Dense matrix together with the memory layout of its data.

    The layout only describes how the values are stored, `Matrix.data[i, j]`
    is always the element at row `i` and column `j`.
    """

    def __init__(self, data, layout=MatrixLayout.ROW):
        self.layout = MatrixLayout(layout)
        self.data = to_layout(as_array(data), self.layout)

    @property
    def shape(self):
        return self.data.shape

    @property
    def is_complex(self):
        return np.iscomplexobj(self.data)

    def to_layout(self, layout):
        return Matrix(self.data, layout)

    def __array__(self, dtype=None, copy=None):
        if dtype is None:
            return self.data
        return self.data.astype(dtype)

    def __repr__(self):
        return (f"<Matrix {self.shape[0]}x{self.shape[1]} "
                f"{self.data.dtype} {self.layout.value}-major>")
