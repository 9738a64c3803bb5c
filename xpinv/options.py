# copyright ############################### #
# This file is part of the Xpinv Package.   #
# Copyright (c) CERN, 2021.                 #
# ######################################### #

import logging

from lark import Lark, Transformer, v_args
from lark.exceptions import LarkError

from .policy import FilterPolicy, PolicyError, Tikhonov
from .assemble import AUXILIARY_MODES
from .weights import WeightTable

log = logging.getLogger(__name__)

METHODS = ("numpy", "simple", "divide_and_conquer")

options_grammar = """
    start: option*

    option: "-" NAME ("=" item ("," item)*)?

    item: VALUE ("=" VALUE)?

    NAME: /[A-Za-z_][A-Za-z0-9_]*/
    VALUE: /[^\\s,=]+/
    %import common.WS
    %ignore WS
"""


class PseudoinverseConfig:
    """
    Settings shared by all the pages of a run.

    Parameters
    ----------
    policy : FilterPolicy, optional
        Singular value filter. Keyword arguments of FilterPolicy (ratio,
        largest, smallest, delete, tikhonov, remove_dc_vectors) can be
        given directly instead.
    economy : bool, optional
        Compute only `min(m, n)` singular vectors. Defaults to True.
    method : str, optional
        Decomposition provider: 'numpy', 'simple' (LAPACK gesvd) or
        'divide_and_conquer' (LAPACK gesdd). Defaults to 'numpy'.
    row_weights, col_weights : array_like or WeightTable, optional
        Row (monitor) and column (corrector) weights.
    row_weights_file, col_weights_file : str, optional
        Files the weight tables are read from, see `load_weights`.
    row_weights_name, row_weights_value : str, optional
        Columns of `row_weights_file` holding the names and the weights.
    col_weights_name, col_weights_value : str, optional
        Same for `col_weights_file`.
    auxiliary_file : str, optional
        File holding the auxiliary matrix composed with the inverse.
    auxiliary_mode : str, optional
        'multiply' for `Rinv @ M`, 'invert' for `M @ Rinv`.
    keep_u, keep_v, keep_s : bool, optional
        Store U, V and the singular values in the results.
    s_as_matrix : bool, optional
        Store the singular values as a diagonal matrix instead of a vector.
    reconstruct : bool, optional
        Rebuild the matrix from the retained singular triplets.
    root : str, optional
        Root of the generated labels, 'Column' if not given.
    digits : int, optional
        Minimum number of digits of the generated labels. Defaults to 3.
    new_column_names : str, optional
        String column of a page that provides its row labels.
    old_column_names : str, optional
        Name of the column holding the labels of the inverse rows.
    """

    def __init__(self, policy=None, economy=True, method="numpy",
                 row_weights=None, col_weights=None,
                 row_weights_file=None, row_weights_name=None,
                 row_weights_value=None, col_weights_file=None,
                 col_weights_name=None, col_weights_value=None,
                 auxiliary_file=None, auxiliary_mode="multiply",
                 keep_u=False, keep_v=False, keep_s=False, s_as_matrix=False,
                 reconstruct=False, root=None, digits=3,
                 new_column_names=None, old_column_names="OldColumnNames",
                 **policy_kwargs):
        if policy is None:
            policy = FilterPolicy(**policy_kwargs)
        elif policy_kwargs:
            raise PolicyError("Cannot give both `policy` and "
                              f"{sorted(policy_kwargs)}")
        self.policy = policy
        self.economy = economy
        self.method = method
        self.row_weights = row_weights
        self.col_weights = col_weights
        self.row_weights_file = row_weights_file
        self.row_weights_name = row_weights_name
        self.row_weights_value = row_weights_value
        self.col_weights_file = col_weights_file
        self.col_weights_name = col_weights_name
        self.col_weights_value = col_weights_value
        self.auxiliary_file = auxiliary_file
        self.auxiliary_mode = auxiliary_mode
        self.keep_u = keep_u
        self.keep_v = keep_v
        self.keep_s = keep_s
        self.s_as_matrix = s_as_matrix
        self.reconstruct = reconstruct
        self.root = root
        self.digits = digits
        self.new_column_names = new_column_names
        self.old_column_names = old_column_names
        self.check()

    def check(self):
        self.policy.check()
        if self.method not in METHODS:
            raise PolicyError(f"Invalid method {self.method!r}, expected one "
                              f"of {METHODS}")
        if self.auxiliary_mode not in AUXILIARY_MODES:
            raise PolicyError(f"Invalid auxiliary mode "
                              f"{self.auxiliary_mode!r}, expected one of "
                              f"{AUXILIARY_MODES}")
        if self.root is not None and self.new_column_names is not None:
            raise PolicyError("-root and -newColumnNames are incompatible")
        if isinstance(self.digits, bool) or not isinstance(self.digits, int) \
                or self.digits < 0:
            raise PolicyError(f"Invalid number of digits {self.digits!r}")
        for which in ("row", "col"):
            if getattr(self, f"{which}_weights_file") is None:
                continue
            if getattr(self, f"{which}_weights") is not None:
                raise PolicyError(f"Cannot give both {which}_weights and "
                                  f"{which}_weights_file")
            for item in ("name", "value"):
                if not getattr(self, f"{which}_weights_{item}"):
                    raise PolicyError(f"No {item} column given for "
                                      f"{which}_weights_file")
        return self

    def load_weights(self, read_columns):
        """
        Read the weight files into WeightTable objects.

        `read_columns(filename)` must return a mapping of column names to
        sequences. Tables already given as `row_weights` or `col_weights`
        are kept. Returns self.
        """
        for which in ("row", "col"):
            filename = getattr(self, f"{which}_weights_file")
            if filename is None:
                continue
            log.info(f"Reading file {filename}...")
            table = WeightTable.from_columns(
                read_columns(filename),
                name=getattr(self, f"{which}_weights_name"),
                value=getattr(self, f"{which}_weights_value"),
                source=filename)
            setattr(self, f"{which}_weights", table)
            setattr(self, f"{which}_weights_file", None)
        return self

    def __repr__(self):
        return (f"PseudoinverseConfig(policy={self.policy!r}, "
                f"economy={self.economy}, method={self.method!r}, "
                f"auxiliary_mode={self.auxiliary_mode!r})")


@v_args(inline=True)
class OptionsEval(Transformer):

    def start(self, *options):
        return list(options)

    def option(self, name, *items):
        return str(name), list(items)

    def item(self, key, value=None):
        if value is None:
            return None, str(key)
        return str(key), str(value)


_parser = Lark(options_grammar, parser="lalr", transformer=OptionsEval())


def _to_int(option, value):
    try:
        return int(value)
    except ValueError:
        raise PolicyError(f"Non numeric value {value!r} given for -{option}")


def _to_float(option, value):
    try:
        return float(value)
    except ValueError:
        raise PolicyError(f"Non numeric value {value!r} given for -{option}")


def _single(option, items):
    if len(items) != 1 or items[0][0] is not None:
        raise PolicyError(f"Option -{option} takes exactly one value")
    return items[0][1]


def _set_ratio(kw, option, items):
    kw["policy"]["ratio"] = _to_float(option, _single(option, items))


def _set_largest(kw, option, items):
    kw["policy"]["largest"] = _to_int(option, _single(option, items))


def _set_smallest(kw, option, items):
    kw["policy"]["smallest"] = _to_int(option, _single(option, items))


def _set_delete(kw, option, items):
    if not items or any(key is not None for key, _ in items):
        raise PolicyError(f"Option -{option} takes a list of indices")
    kw["policy"].setdefault("delete", []).extend(
        _to_int(option, vv) for _, vv in items)


def _set_tikhonov(kw, option, items):
    if len(items) > 1:
        raise PolicyError("Invalid -tikhonov syntax, only one of svn, alpha "
                          "and beta may be provided")
    tk = {}
    for key, value in items:
        key = _match(key or "", ("svn", "alpha", "beta"), "tikhonov")
        tk[key] = (_to_int(option, value) if key == "svn"
                   else _to_float(option, value))
    kw["policy"]["tikhonov"] = Tikhonov(**tk)


def _set_remove_dc(kw, option, items):
    _no_value(option, items)
    kw["policy"]["remove_dc_vectors"] = True


def _set_method(kw, option, items):
    value = _match(_single(option, items), ("simple", "divideAndConquer"),
                   option)
    kw["method"] = {"simple": "simple",
                    "divideAndConquer": "divide_and_conquer"}[value]


def _set_multiply(kw, option, items):
    if not items or len(items) > 2 or any(kk is not None for kk, _ in items):
        raise PolicyError(f"Invalid -{option} syntax, expected "
                          f"-{option}=<file>[,invert]")
    kw["auxiliary_file"] = items[0][1]
    mode = "multiply"
    if len(items) == 2:
        _match(items[1][1], ("invert",), option)
        mode = "invert"
    kw["auxiliary_mode"] = mode


def _weights_setter(which):
    def setter(kw, option, items):
        if len(items) < 2 or items[0][0] is not None:
            raise PolicyError(f"Invalid -{option} syntax, expected "
                              f"-{option}=<file>,name=<column>,value=<column>")
        kw[f"{which}_weights_file"] = items[0][1]
        for key, value in items[1:]:
            key = _match(key or "", ("name", "value"), option)
            kw[f"{which}_weights_{key}"] = value
    return setter


def _set_s_file(kw, option, items):
    if not items or len(items) > 2 or any(kk is not None for kk, _ in items):
        raise PolicyError(f"Invalid -{option} syntax, expected "
                          f"-{option}=<file>[,matrix]")
    kw["keep_s"] = True
    if len(items) == 2:
        _match(items[1][1], ("matrix",), option)
        kw["s_as_matrix"] = True


def _set_digits(kw, option, items):
    kw["digits"] = _to_int(option, _single(option, items))


def _string(attr):
    def setter(kw, option, items):
        kw[attr] = _single(option, items)
    return setter


def _no_value(option, items):
    if items:
        raise PolicyError(f"Option -{option} takes no value")


def _toggle(attr, takes_value=True):
    def setter(kw, option, items):
        if not takes_value:
            _no_value(option, items)
        kw[attr] = True
    return setter


OPTIONS = {
    "minimumSingularValueRatio": _set_ratio,
    "largestSingularValues": _set_largest,
    "smallestSingularValues": _set_smallest,
    "deleteVectors": _set_delete,
    "tikhonov": _set_tikhonov,
    "removeDCVectors": _set_remove_dc,
    "economy": _toggle("economy", takes_value=False),
    "lapackMethod": _set_method,
    "multiplyMatrix": _set_multiply,
    "weights": _weights_setter("row"),
    "correctorWeights": _weights_setter("col"),
    "root": _string("root"),
    "digits": _set_digits,
    "newColumnNames": _string("new_column_names"),
    "oldColumnNames": _string("old_column_names"),
    # output file names are handled by the caller, only the toggle is kept
    "uMatrix": _toggle("keep_u"),
    "vMatrix": _toggle("keep_v"),
    "sFile": _set_s_file,
    "reconstruct": _toggle("reconstruct"),
}

def _match(name, choices, what):
    """Case insensitive unique-prefix match of `name` in `choices`."""
    key = name.replace("_", "").lower()
    exact = [cc for cc in choices if cc.lower() == key]
    if exact:
        return exact[0]
    found = [cc for cc in choices if key and cc.lower().startswith(key)]
    if len(found) == 1:
        return found[0]
    if found:
        raise PolicyError(f"Ambiguous {what} option {name!r}: "
                          f"{', '.join(found)}")
    raise PolicyError(f"Unrecognized {what} option {name!r}")


def parse_options(text, **defaults):
    """
    Build a PseudoinverseConfig from command line style options.

    Example
    -------
    >>> parse_options("-largest=10 -deleteVectors=2,5 -tikhonov=beta=0.01")

    Options not present in `text` take their value from `defaults`, then
    from the PseudoinverseConfig defaults, except `economy` which is off
    unless `-economy` is given.
    """
    try:
        options = _parser.parse(text)
    except LarkError as err:
        raise PolicyError(f"Invalid option string {text!r}: {err}") from err

    policy_kwargs = {}
    kw = {"policy": policy_kwargs}
    for name, items in options:
        option = _match(name, OPTIONS, "command line")
        log.debug(f"Option -{option} {items}")
        OPTIONS[option](kw, option, items)

    kw.pop("policy")
    config_kwargs = {"economy": False}
    config_kwargs.update(defaults)
    config_kwargs.update(kw)
    return PseudoinverseConfig(**config_kwargs, **policy_kwargs)
