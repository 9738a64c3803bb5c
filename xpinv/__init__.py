# copyright ############################### #
# This file is part of the Xpinv Package.   #
# Copyright (c) CERN, 2021.                 #
# ######################################### #

from .matrix import Matrix, MatrixLayout
from .decomposition import (decompose, DecompositionError, NumpyProvider,
                            ScipyProvider)
from .weights import WeightTable, apply_weights, unapply_weights
from .policy import (FilterPolicy, Tikhonov, PolicyError, SingularMatrixError,
                     filter_singular_values)
from .assemble import assemble_inverse, reconstruct, ShapeMismatchError
from .options import PseudoinverseConfig, parse_options
from .pseudoinverse import (PseudoInverse, PseudoinverseResult, pseudoinverse,
                            process_pages)

from ._version import __version__


__all__ = [
    "Matrix",
    "MatrixLayout",
    "decompose",
    "DecompositionError",
    "NumpyProvider",
    "ScipyProvider",
    "WeightTable",
    "apply_weights",
    "unapply_weights",
    "FilterPolicy",
    "Tikhonov",
    "PolicyError",
    "SingularMatrixError",
    "filter_singular_values",
    "assemble_inverse",
    "reconstruct",
    "ShapeMismatchError",
    "PseudoinverseConfig",
    "parse_options",
    "PseudoInverse",
    "PseudoinverseResult",
    "pseudoinverse",
    "process_pages",
    "__version__",
]
