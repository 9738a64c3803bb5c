# copyright ############################### #
# This file is part of the Xpinv Package.   #
# Copyright (c) CERN, 2021.                 #
# ######################################### #

import logging

import numpy as np

from .assemble import assemble_inverse, reconstruct
from .decomposition import decompose, get_provider
from .matrix import as_array
from .options import PseudoinverseConfig
from .policy import PolicyError, filter_singular_values
from .weights import apply_weights, resolve_weights

log = logging.getLogger(__name__)


def default_labels(count, root="Column", digits=3):
    """Names like Column000, Column001, ... with at least `digits` digits."""
    digits = max(digits, len(str(count - 1)) if count > 0 else 1)
    return [f"{root}{ii:0{digits}d}" for ii in range(count)]


def _check_labels(labels, count, what):
    labels = [str(ll) for ll in labels]
    if len(labels) != count:
        raise ValueError(f"Got {len(labels)} {what} labels for {count} "
                         f"{what}s")
    return labels


class PseudoinverseResult:
    """
    Output of one page: the (composed) inverse and its diagnostics.

    `row_labels` and `col_labels` name the rows and columns of `inverse`,
    `row_label_column` is the name of the column holding `row_labels`.
    `u`, `v`, `s_matrix` and `reconstructed` are None unless requested.
    `s_matrix` holds the singular values as a vector, or as a diagonal
    matrix when `s_as_matrix` is set.
    """

    def __init__(self, inverse, filtered, row_labels, col_labels, u=None,
                 v=None, s_matrix=None, reconstructed=None,
                 row_label_column="OldColumnNames"):
        self.inverse = inverse
        self.filtered = filtered
        self.row_labels = row_labels
        self.col_labels = col_labels
        self.u = u
        self.v = v
        self.s_matrix = s_matrix
        self.reconstructed = reconstructed
        self.row_label_column = row_label_column

    @property
    def used_count(self):
        return self.filtered.used_count

    @property
    def condition_number(self):
        return self.filtered.condition_number

    @property
    def deleted_indices(self):
        return list(self.filtered.deleted_indices)

    @property
    def deleted_vectors(self):
        return self.filtered.deleted_vectors

    @property
    def singular_values(self):
        return self.filtered.singular_values

    @property
    def used_singular_values(self):
        return self.filtered.used_singular_values

    @property
    def inverse_singular_values(self):
        return self.filtered.inverse_singular_values

    @property
    def tikhonov_alpha(self):
        return self.filtered.alpha

    def summary(self):
        """Scalar diagnostics keyed by their report parameter names."""
        return {
            "NumberOfSingularValuesUsed": self.used_count,
            "DeletedVectors": self.deleted_vectors,
            "ConditionNumber": self.condition_number,
            "LargestSingularValue": float(self.singular_values.max()),
            "TikhonovAlpha": self.tikhonov_alpha,
        }

    def __repr__(self):
        rows, cols = self.inverse.shape
        return (f"<PseudoinverseResult {rows}x{cols} "
                f"used={self.used_count}/{len(self.singular_values)} "
                f"cond={self.condition_number:.4g}>")


class PseudoInverse:
    """
    Pseudoinverse pipeline applied page by page.

    Parameters
    ----------
    config : PseudoinverseConfig, optional
        Run configuration. If not given it is built from `kwargs`.
    provider : object, optional
        Decomposition provider, overrides `config.method`.
    **kwargs
        Arguments of PseudoinverseConfig.

    The configuration is validated at construction. Weights given as a
    WeightTable are resolved with the labels of the first page and reused
    for all the following pages, which must have the same shape.
    """

    def __init__(self, config=None, provider=None, **kwargs):
        if config is None:
            config = PseudoinverseConfig(**kwargs)
        elif kwargs:
            raise ValueError("Cannot give both `config` and keyword "
                             f"arguments {sorted(kwargs)}")
        self.config = config.check()
        for which in ("row", "col"):
            if getattr(config, f"{which}_weights_file") is not None:
                raise PolicyError(f"{which}_weights_file is not loaded, call "
                                  "config.load_weights() first")
        self.provider = get_provider(
            provider if provider is not None else config.method)
        self.npages = 0
        self._shape = None
        self._row_weights = None
        self._col_weights = None

    def _resolve_weights(self, shape, row_labels, col_labels):
        if self._shape is None:
            self._shape = shape
            self._row_weights = _drop_unit(
                resolve_weights(self.config.row_weights, row_labels))
            self._col_weights = _drop_unit(
                resolve_weights(self.config.col_weights, col_labels))
        elif shape != self._shape:
            raise ValueError(
                f"Pages don't have the same shape: got {shape[0]}x{shape[1]},"
                f" first page was {self._shape[0]}x{self._shape[1]}.")

    def compute(self, matrix, row_labels=None, col_labels=None,
                auxiliary=None, auxiliary_row_labels=None,
                auxiliary_col_labels=None, string_columns=None):
        """
        Process one page.

        Parameters
        ----------
        matrix : array_like
            Real or complex `m x n` matrix.
        row_labels, col_labels : sequence of str, optional
            Names of the rows and columns, used for weight lookup and to
            label the output.
        auxiliary : array_like, optional
            Matrix composed with the inverse according to
            `config.auxiliary_mode`.
        auxiliary_row_labels, auxiliary_col_labels : sequence of str, optional
            Names of the rows and columns of the auxiliary matrix.
        string_columns : dict, optional
            String columns of the page. When `row_labels` is not given, the
            row labels are taken from `config.new_column_names`, or from the
            first string column if no `config.root` is set.

        Returns
        -------
        PseudoinverseResult
        """
        config = self.config
        a = as_array(matrix)
        m, n = a.shape
        if m == 0 or n == 0:
            raise ValueError("No rows in dataset.")
        if row_labels is None:
            row_labels = self._page_labels(m, string_columns)
        else:
            row_labels = _check_labels(row_labels, m, "row")
        col_labels = (default_labels(n) if col_labels is None
                      else _check_labels(col_labels, n, "column"))
        self._resolve_weights((m, n), row_labels, col_labels)
        self.npages += 1
        log.info(f"Page {self.npages} has {m} rows and {n} columns.")

        if self._row_weights is not None or self._col_weights is not None:
            a = apply_weights(a, self._row_weights, self._col_weights)

        U, s, Vh = decompose(a, economy=config.economy,
                             provider=self.provider)
        filtered = filter_singular_values(s, config.policy, Vh)

        inverse = assemble_inverse(
            U, filtered.inverse_singular_values, Vh,
            row_weights=self._row_weights, col_weights=self._col_weights,
            auxiliary=auxiliary, auxiliary_mode=config.auxiliary_mode)
        out_rows, out_cols = self._output_labels(
            inverse.shape, row_labels, col_labels, auxiliary,
            auxiliary_row_labels, auxiliary_col_labels)

        result = PseudoinverseResult(
            inverse=inverse,
            filtered=filtered,
            row_labels=out_rows,
            col_labels=out_cols,
            u=U if config.keep_u else None,
            v=Vh.conj().T if config.keep_v else None,
            s_matrix=self._s_output(filtered.singular_values),
            reconstructed=(reconstruct(U, filtered.used_singular_values, Vh)
                           if config.reconstruct else None),
            row_label_column=(config.old_column_names if auxiliary is None
                              else "OldColumnNames"),
        )
        log.info(f"Page {self.npages}: {result.summary()}")
        return result

    def _labels(self, count):
        return default_labels(count, root=self.config.root or "Column",
                              digits=self.config.digits)

    def _page_labels(self, count, string_columns):
        name = self.config.new_column_names
        if name is not None:
            if not string_columns or name not in string_columns:
                raise ValueError(f"Column {name} named with newColumnNames "
                                 "does not exist in input")
            return _check_labels(string_columns[name], count, "row")
        if string_columns and self.config.root is None:
            first = next(iter(string_columns.values()))
            return _check_labels(first, count, "row")
        return self._labels(count)

    def _s_output(self, singular_values):
        if not self.config.keep_s:
            return None
        if self.config.s_as_matrix:
            return np.diag(singular_values)
        return singular_values.copy()

    def _output_labels(self, shape, row_labels, col_labels, auxiliary,
                       auxiliary_row_labels, auxiliary_col_labels):
        if auxiliary is None:
            return list(col_labels), list(row_labels)
        if self.config.auxiliary_mode == "multiply":
            # rows of the auxiliary matrix are the rows of the input
            _warn_unmatched(auxiliary_row_labels, row_labels)
            out_rows = list(col_labels)
            out_cols = (self._labels(shape[1]) if auxiliary_col_labels is None
                        else _check_labels(auxiliary_col_labels, shape[1],
                                           "column"))
        else:
            _warn_unmatched(auxiliary_col_labels, col_labels)
            out_rows = (self._labels(shape[0]) if auxiliary_row_labels is None
                        else _check_labels(auxiliary_row_labels, shape[0],
                                           "row"))
            out_cols = list(row_labels)
        return out_rows, out_cols

    def __call__(self, matrix, **kwargs):
        return self.compute(matrix, **kwargs)


def _drop_unit(weights):
    # all-ones weights give the unweighted result bit for bit
    if weights is not None and np.all(weights == 1.0):
        return None
    return weights


def _warn_unmatched(labels, reference):
    if labels is None:
        return
    known = set(reference)
    for ll in labels:
        if str(ll) not in known:
            log.warning(f"Name {ll} doesn't exist in input matrix.")


def pseudoinverse(matrix, **kwargs):
    """One-shot pseudoinverse of `matrix`, see PseudoInverse."""
    compute_kwargs = {kk: kwargs.pop(kk) for kk in
                      ("row_labels", "col_labels", "auxiliary",
                       "auxiliary_row_labels", "auxiliary_col_labels",
                       "string_columns")
                      if kk in kwargs}
    return PseudoInverse(**kwargs).compute(matrix, **compute_kwargs)


def process_pages(pages, config=None, provider=None, **kwargs):
    """
    Run the pipeline over `pages` in order, yielding one result per page.

    Each page is either a matrix or a dict of PseudoInverse.compute
    arguments. The configuration is checked before any page is read and
    the first error stops the iteration.
    """
    pinv = PseudoInverse(config=config, provider=provider, **kwargs)
    return _iter_pages(pinv, pages)


def _iter_pages(pinv, pages):
    for page in pages:
        if isinstance(page, dict):
            yield pinv.compute(**page)
        else:
            yield pinv.compute(page)
