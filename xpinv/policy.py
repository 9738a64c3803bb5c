# copyright ############################### #
# This file is part of the Xpinv Package.   #
# Copyright (c) CERN, 2021.                 #
# ######################################### #

import logging
import numbers

import numpy as np

log = logging.getLogger(__name__)

TIKHONOV_ALPHA_DEFAULT = 0.01
DC_VECTOR_THRESHOLD = 0.1


class PolicyError(ValueError):
    pass


class SingularMatrixError(ValueError):
    pass


def _is_int(value):
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


class Tikhonov:
    """
    Tikhonov damping of the inverse singular values, s / (s**2 + alpha**2).

    At most one of the parameters can be given. Without parameters the
    default alpha of 0.01 is used.

    Parameters
    ----------
    alpha : float, optional
        Damping value.
    svn : int, optional
        Use the `svn`-th (1-based) singular value as alpha.
    beta : float, optional
        Use `beta` times the largest singular value as alpha.
    """

    def __init__(self, alpha=None, svn=None, beta=None):
        given = [kk for kk, vv in
                 (("alpha", alpha), ("svn", svn), ("beta", beta))
                 if vv is not None]
        if len(given) > 1:
            raise PolicyError("Only one of svn, alpha and beta may be "
                              "given for Tikhonov regularization.")
        if svn is not None and (not _is_int(svn) or svn < 1):
            raise PolicyError(f"Tikhonov svn must be a positive integer, "
                              f"got {svn!r}")
        for kk, vv in (("alpha", alpha), ("beta", beta)):
            if vv is not None and not vv >= 0:
                raise PolicyError(f"Tikhonov {kk} must be non-negative, "
                                  f"got {vv!r}")
        self.alpha = alpha
        self.svn = svn
        self.beta = beta

    @property
    def mode(self):
        if self.svn is not None:
            return "svn"
        if self.beta is not None:
            return "beta"
        return "alpha"

    def resolve_alpha(self, s):
        """Damping value for the singular values `s` of one page."""
        if self.svn is not None:
            if self.svn <= len(s):
                return float(s[self.svn - 1])
            log.warning(f"Tikhonov svn={self.svn} exceeds the number of "
                        f"singular values ({len(s)}), using "
                        f"alpha={TIKHONOV_ALPHA_DEFAULT}")
            return TIKHONOV_ALPHA_DEFAULT
        if self.beta is not None:
            return float(self.beta * np.max(s))
        if self.alpha is not None:
            return float(self.alpha)
        return TIKHONOV_ALPHA_DEFAULT

    def __repr__(self):
        value = {"svn": self.svn, "beta": self.beta, "alpha": self.alpha}
        return f"Tikhonov({self.mode}={value[self.mode]})"


def _as_tikhonov(value):
    if value is None or value is False:
        return None
    if value is True:
        return Tikhonov()
    if isinstance(value, Tikhonov):
        return value
    if isinstance(value, dict):
        return Tikhonov(**value)
    if isinstance(value, numbers.Real):
        return Tikhonov(alpha=float(value))
    raise PolicyError(f"Invalid Tikhonov setting {value!r}")


class FilterPolicy:
    """
    Selection of the singular values taking part in the inverse.

    Parameters
    ----------
    ratio : float, optional
        Reject singular values smaller than `ratio` times the largest one.
    largest : int, optional
        Keep only the `largest` first singular values.
    smallest : int, optional
        Remove the `smallest` last singular values.
    delete : sequence of int, optional
        Indices of singular vectors to remove, applied after the other
        rules.
    tikhonov : Tikhonov, dict, float or bool, optional
        Damping of the kept singular values. A float is taken as alpha,
        True selects the default alpha.
    remove_dc_vectors : bool, optional
        Drop the singular vectors whose right vector has a large DC
        component.

    Only one of `ratio`, `largest` and `smallest` may be set; a value of 0
    means the rule is off.
    """

    def __init__(self, ratio=None, largest=None, smallest=None, delete=None,
                 tikhonov=None, remove_dc_vectors=False):
        self.ratio = ratio
        self.largest = largest
        self.smallest = smallest
        self.delete = [] if delete is None else list(delete)
        self.tikhonov = _as_tikhonov(tikhonov)
        self.remove_dc_vectors = bool(remove_dc_vectors)
        self.check()

    def check(self):
        """Validate the configuration, raise PolicyError if invalid."""
        selected = [kk for kk in ("ratio", "largest", "smallest")
                    if getattr(self, kk)]
        if len(selected) > 1:
            raise PolicyError(
                "Can only specify one of minimumSingularValueRatio, "
                "largestSingularValues and smallestSingularValues "
                f"(got {', '.join(selected)}).")
        if self.ratio is not None and not self.ratio >= 0:
            raise PolicyError(f"`ratio` must be non-negative, got {self.ratio!r}")
        for kk in ("largest", "smallest"):
            vv = getattr(self, kk)
            if vv is not None and (not _is_int(vv) or vv < 0):
                raise PolicyError(f"`{kk}` must be a non-negative integer, "
                                  f"got {vv!r}")
        for dd in self.delete:
            if not _is_int(dd):
                raise PolicyError(f"Non numeric value {dd!r} in `delete`")
        return self

    def __repr__(self):
        out = []
        for kk in ("ratio", "largest", "smallest"):
            if getattr(self, kk):
                out.append(f"{kk}={getattr(self, kk)}")
        if self.delete:
            out.append(f"delete={self.delete}")
        if self.tikhonov is not None:
            out.append(f"tikhonov={self.tikhonov!r}")
        if self.remove_dc_vectors:
            out.append("remove_dc_vectors=True")
        return f"FilterPolicy({', '.join(out)})"


class FilterResult:
    """Outcome of the singular value filter for one page."""

    def __init__(self, singular_values, used_singular_values,
                 inverse_singular_values, used_count, deleted_indices,
                 reference, alpha):
        self.singular_values = singular_values
        self.used_singular_values = used_singular_values
        self.inverse_singular_values = inverse_singular_values
        self.used_count = used_count
        self.deleted_indices = deleted_indices
        self.reference = reference
        self.alpha = alpha

    @property
    def condition_number(self):
        used = self.used_singular_values[self.used_singular_values > 0]
        if len(used) == 0:
            return np.nan
        return float(used.max() / used.min())

    @property
    def deleted_vectors(self):
        return " ".join(str(dd) for dd in self.deleted_indices)

    def __repr__(self):
        return (f"<FilterResult {self.used_count}/"
                f"{len(self.singular_values)} used>")


def dc_vector_mask(vh, threshold=DC_VECTOR_THRESHOLD):
    """True for the right singular vectors dominated by a DC component."""
    vh = np.asarray(vh)
    n = vh.shape[1]
    k = min(vh.shape)
    return np.abs(vh[:k].sum(axis=1)) > threshold * np.sqrt(n)


def filter_singular_values(s, policy=None, vh=None):
    """
    Select the singular values used in the inverse and their factors.

    Parameters
    ----------
    s : array_like
        Singular values in descending order.
    policy : FilterPolicy, optional
        Filter configuration. The default keeps all non-zero values.
    vh : array_like, optional
        Right singular vectors, needed only when the policy removes DC
        vectors.

    Returns
    -------
    FilterResult

    Raises
    ------
    SingularMatrixError
        If all singular values are zero.
    """
    if policy is None:
        policy = FilterPolicy()
    raw = np.array(s, dtype=np.float64)
    k = len(raw)
    s = raw.copy()

    if policy.remove_dc_vectors:
        if vh is None:
            raise PolicyError("Right singular vectors are needed to remove "
                              "DC vectors")
        mask = dc_vector_mask(vh)[:k]
        if mask.any():
            log.info(f"Removing DC vectors {np.flatnonzero(mask).tolist()}")
        s[mask] = 0.0

    nonzero = np.flatnonzero(s)
    if len(nonzero) == 0:
        raise SingularMatrixError(
            "No non-zero singular values found, unable to find the inverse "
            "matrix.")
    reference = s[nonzero[0]]

    alpha = None
    if policy.tikhonov is not None:
        alpha = policy.tikhonov.resolve_alpha(s)

    index = np.arange(k)
    excluded = s == 0
    if policy.ratio:
        excluded |= (s / reference) < policy.ratio
    if policy.largest:
        excluded |= index >= policy.largest
    if policy.smallest:
        excluded |= index >= k - policy.smallest

    kept = ~excluded
    inverse = np.zeros(k)
    if alpha is None:
        inverse[kept] = 1 / s[kept]
    else:
        inverse[kept] = s[kept] / (s[kept] ** 2 + alpha ** 2)
    used = np.where(kept, s, 0.0)
    used_count = int(kept.sum())

    deleted = []
    for dd in policy.delete:
        if not 0 <= dd < k:
            log.debug(f"Ignoring deleted vector {dd} out of range [0, {k})")
            continue
        if dd in deleted:
            continue
        deleted.append(dd)
        if kept[dd]:
            used_count -= 1
        inverse[dd] = 0.0
        used[dd] = 0.0

    result = FilterResult(
        singular_values=raw,
        used_singular_values=used,
        inverse_singular_values=inverse,
        used_count=used_count,
        deleted_indices=deleted,
        reference=float(reference),
        alpha=alpha,
    )
    log.debug(f"Inverse singular values {inverse}")
    return result
