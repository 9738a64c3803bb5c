import logging

import numpy as np
import pytest

from xpinv.policy import (FilterPolicy, Tikhonov, PolicyError,
                          SingularMatrixError, filter_singular_values)

s4 = np.array([4.0, 3.0, 2.0, 1.0])


def test_no_filter():
    res = filter_singular_values(s4)
    assert res.used_count == 4
    assert np.allclose(res.inverse_singular_values, 1 / s4)
    assert np.array_equal(res.used_singular_values, s4)
    assert res.deleted_indices == []
    assert res.deleted_vectors == ""
    assert res.condition_number == 4.0
    assert res.alpha is None


def test_exact_zero_excluded():
    s = np.array([3.0, 2.0, 0.0])
    for policy in [FilterPolicy(), FilterPolicy(ratio=1e-9),
                   FilterPolicy(largest=3), FilterPolicy(tikhonov=0.5),
                   FilterPolicy(delete=[0])]:
        res = filter_singular_values(s, policy)
        assert res.inverse_singular_values[2] == 0
        assert res.used_singular_values[2] == 0
    assert filter_singular_values(s).used_count == 2


def test_ratio():
    s = np.array([1.0, 0.5, 0.4])
    res = filter_singular_values(s, FilterPolicy(ratio=0.45))
    assert res.used_count == 2
    assert np.allclose(res.inverse_singular_values, [1, 2, 0])
    assert np.array_equal(res.singular_values, s)
    assert res.reference == 1.0


def test_ratio_monotonic():
    s = np.array([10.0, 5.0, 1.0, 0.3, 1e-3, 1e-8])
    counts = [filter_singular_values(s, FilterPolicy(ratio=rr)).used_count
              for rr in [0, 1e-9, 1e-6, 1e-3, 0.05, 0.2, 0.5, 1, 2]]
    assert counts == sorted(counts, reverse=True)
    assert counts[0] == 6
    assert counts[-1] == 0


def test_largest_smallest():
    res = filter_singular_values(s4, FilterPolicy(largest=2))
    assert res.used_count == 2
    assert np.allclose(res.inverse_singular_values, [0.25, 1 / 3, 0, 0])
    assert res.condition_number == 4 / 3

    res = filter_singular_values(s4, FilterPolicy(smallest=1))
    assert res.used_count == 3
    assert np.allclose(res.used_singular_values, [4, 3, 2, 0])


def test_mutually_exclusive():
    with pytest.raises(PolicyError):
        FilterPolicy(ratio=0.1, largest=2)
    with pytest.raises(PolicyError):
        FilterPolicy(largest=2, smallest=1)
    with pytest.raises(PolicyError):
        FilterPolicy(ratio=0.1, smallest=1)
    # zero means off
    FilterPolicy(ratio=0, largest=2)


def test_invalid_settings():
    with pytest.raises(PolicyError):
        FilterPolicy(largest=-1)
    with pytest.raises(PolicyError):
        FilterPolicy(largest=1.5)
    with pytest.raises(PolicyError):
        FilterPolicy(ratio=-0.1)
    with pytest.raises(PolicyError):
        FilterPolicy(delete=["a"])
    with pytest.raises(PolicyError):
        FilterPolicy(tikhonov="strong")


def test_delete_vectors():
    res = filter_singular_values(s4, FilterPolicy(delete=[1, 3]))
    assert res.used_count == 2
    assert np.allclose(res.inverse_singular_values, [0.25, 0, 0.5, 0])
    assert np.allclose(res.used_singular_values, [4, 0, 2, 0])
    assert res.deleted_indices == [1, 3]
    assert res.deleted_vectors == "1 3"
    assert res.condition_number == 2.0


def test_delete_out_of_range_and_duplicates():
    res = filter_singular_values(s4, FilterPolicy(delete=[-1, 7, 2, 2]))
    assert res.used_count == 3
    assert res.deleted_indices == [2]


def test_delete_already_excluded_not_counted_twice():
    res = filter_singular_values(s4, FilterPolicy(largest=2, delete=[3, 0]))
    assert res.used_count == 1
    assert res.deleted_indices == [3, 0]
    assert np.allclose(res.inverse_singular_values, [0, 1 / 3, 0, 0])


def test_delete_processes_whole_list():
    # a deletion past the largest-N boundary does not stop the others
    res = filter_singular_values(s4, FilterPolicy(largest=2, delete=[3, 1]))
    assert res.used_count == 1
    assert res.deleted_indices == [3, 1]
    assert np.allclose(res.inverse_singular_values, [0.25, 0, 0, 0])


def test_tikhonov_modes():
    s = np.array([2.0, 1.0])
    expected = s / (s**2 + 1)
    for tk in [Tikhonov(alpha=1.0), Tikhonov(svn=2), Tikhonov(beta=0.5),
               1.0, {"svn": 2}]:
        res = filter_singular_values(s, FilterPolicy(tikhonov=tk))
        assert res.alpha == 1.0
        assert np.allclose(res.inverse_singular_values, expected)
        assert np.array_equal(res.used_singular_values, s)
        assert res.used_count == 2


def test_tikhonov_default_alpha():
    res = filter_singular_values(s4, FilterPolicy(tikhonov=True))
    assert res.alpha == 0.01
    assert np.allclose(res.inverse_singular_values, s4 / (s4**2 + 1e-4))


def test_tikhonov_only_one_mode():
    with pytest.raises(PolicyError):
        Tikhonov(alpha=1.0, beta=0.1)
    with pytest.raises(PolicyError):
        Tikhonov(svn=0)


def test_tikhonov_svn_out_of_range(caplog):
    with caplog.at_level(logging.WARNING):
        res = filter_singular_values(s4, FilterPolicy(tikhonov={"svn": 10}))
    assert res.alpha == 0.01
    assert "svn=10" in caplog.text


def test_tikhonov_continuity():
    for alpha in [1e-3, 1e-6, 1e-9]:
        res = filter_singular_values(s4, FilterPolicy(tikhonov=alpha))
        assert np.allclose(res.inverse_singular_values, 1 / s4,
                           rtol=10 * alpha, atol=0)


def test_tikhonov_with_filter():
    res = filter_singular_values(s4, FilterPolicy(largest=3, tikhonov=0.1))
    assert res.inverse_singular_values[3] == 0
    assert np.isclose(res.inverse_singular_values[0], 4 / (16 + 0.01))


def test_condition_number_single_value():
    res = filter_singular_values(np.array([5.0, 0.0, 0.0]))
    assert res.used_count == 1
    assert res.condition_number == 1.0


def test_condition_number_nothing_used():
    res = filter_singular_values(np.array([2.0, 1.0]),
                                 FilterPolicy(delete=[0, 1]))
    assert res.used_count == 0
    assert np.isnan(res.condition_number)


def test_all_zero_fails():
    with pytest.raises(SingularMatrixError):
        filter_singular_values(np.zeros(3))


def test_remove_dc_vectors():
    r = np.sqrt(0.5)
    vh = np.array([[r, r], [r, -r]])
    s = np.array([2.0, 1.0])
    res = filter_singular_values(s, FilterPolicy(remove_dc_vectors=True), vh)
    assert res.used_count == 1
    assert res.reference == 1.0
    assert np.array_equal(res.singular_values, s)
    assert np.allclose(res.inverse_singular_values, [0, 1])

    # ignored unless requested
    assert filter_singular_values(s, FilterPolicy(), vh).used_count == 2

    with pytest.raises(PolicyError):
        filter_singular_values(s, FilterPolicy(remove_dc_vectors=True))
