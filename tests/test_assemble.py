import numpy as np
import pytest

from xpinv.assemble import (assemble_inverse, compose, reconstruct,
                            ShapeMismatchError)
from xpinv.decomposition import decompose

A = np.array([[1.0, 0.0], [0.0, 1.0], [0.0, 0.0]])

rng = np.random.default_rng(7)
R = rng.normal(size=(5, 3))
C = rng.normal(size=(4, 6)) + 1j * rng.normal(size=(4, 6))


def test_identity_like_inverse():
    U, s, Vh = decompose(A, economy=True)
    assert np.allclose(s, [1, 1])
    rinv = assemble_inverse(U, 1 / s, Vh)
    assert rinv.shape == (2, 3)
    assert np.allclose(rinv, [[1, 0, 0], [0, 1, 0]])


@pytest.mark.parametrize("economy", [True, False])
def test_matches_pinv(economy):
    for mat in [R, R.T, C, C.T]:
        U, s, Vh = decompose(mat, economy=economy)
        rinv = assemble_inverse(U, 1 / s, Vh)
        assert np.allclose(rinv, np.linalg.pinv(mat))


def test_filtered_factors():
    U, s, Vh = decompose(R)
    factors = 1 / s
    factors[-1] = 0
    rinv = assemble_inverse(U, factors, Vh)
    expected = Vh[:2].T @ np.diag(1 / s[:2]) @ U[:, :2].T
    assert np.allclose(rinv, expected)


def test_compose_multiply():
    U, s, Vh = decompose(R)
    M = rng.normal(size=(5, 2))
    out = assemble_inverse(U, 1 / s, Vh, auxiliary=M)
    assert out.shape == (3, 2)
    assert np.allclose(out, np.linalg.pinv(R) @ M)


def test_compose_invert():
    U, s, Vh = decompose(R)
    M = rng.normal(size=(4, 3))
    out = assemble_inverse(U, 1 / s, Vh, auxiliary=M, auxiliary_mode="invert")
    assert out.shape == (4, 5)
    assert np.allclose(out, M @ np.linalg.pinv(R))


def test_compose_shape_mismatch():
    rinv = np.zeros((3, 5))
    with pytest.raises(ShapeMismatchError):
        compose(rinv, np.zeros((3, 2)), "multiply")
    with pytest.raises(ShapeMismatchError):
        compose(rinv, np.zeros((4, 5)), "invert")
    with pytest.raises(ShapeMismatchError):
        compose(rinv, np.zeros(5))


def test_invalid_auxiliary_mode():
    U, s, Vh = decompose(R)
    with pytest.raises(ValueError):
        assemble_inverse(U, 1 / s, Vh, auxiliary=np.eye(5),
                         auxiliary_mode="left")


def test_weighted_assembly():
    w = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
    U, s, Vh = decompose(np.diag(w) @ R)
    rinv = assemble_inverse(U, 1 / s, Vh, row_weights=w)
    assert np.allclose(rinv, np.linalg.pinv(np.diag(w) @ R) @ np.diag(w))


@pytest.mark.parametrize("economy", [True, False])
def test_reconstruct_round_trip(economy):
    for mat in [R, R.T, C]:
        U, s, Vh = decompose(mat, economy=economy)
        rec = reconstruct(U, s, Vh)
        assert rec.shape == mat.shape
        assert np.linalg.norm(rec - mat) <= 1e-9 * np.linalg.norm(mat)


def test_reconstruct_truncated():
    U, s, Vh = decompose(R)
    used = s.copy()
    used[1:] = 0
    rec = reconstruct(U, used, Vh)
    assert np.linalg.matrix_rank(rec) == 1
    assert np.allclose(rec, s[0] * np.outer(U[:, 0], Vh[0]))
