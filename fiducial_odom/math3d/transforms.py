"""Rigid transform helpers on (translation, quaternion) pairs.

A transform (t, q) maps a point p expressed in its child frame into its
parent frame: p' = q * p * q^{-1} + t.
"""

from __future__ import annotations

import numpy as np

from .quaternion import q_conj, q_mul, q_normalize, q_rotate_vec


def apply(t: np.ndarray, q: np.ndarray, p: np.ndarray) -> np.ndarray:
    return q_rotate_vec(q, np.asarray(p, dtype=np.float64)) + np.asarray(t, dtype=np.float64)


def compose(
    t_a: np.ndarray, q_a: np.ndarray, t_b: np.ndarray, q_b: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """a * b: first apply b, then a."""
    t = apply(t_a, q_a, t_b)
    q = q_normalize(q_mul(q_a, q_b))
    return t, q


def invert(t: np.ndarray, q: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    q_inv = q_conj(q_normalize(q))
    t_inv = -q_rotate_vec(q_inv, np.asarray(t, dtype=np.float64))
    return t_inv, q_inv


def inverse_times(
    t_a: np.ndarray, q_a: np.ndarray, t_b: np.ndarray, q_b: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """inverse(a) * b, i.e. b expressed in a's local frame."""
    t_a_inv, q_a_inv = invert(t_a, q_a)
    return compose(t_a_inv, q_a_inv, t_b, q_b)
