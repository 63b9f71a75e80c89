"""
Numeric Utilities for the Transformer Forward Pass

This module holds the small, stateless linear-algebra helpers that every
other component is built on. Vectors are 1-D float32 arrays and matrices are
2-D row-major float32 arrays, so the "all rows have the same length"
invariant is guaranteed by the array shape itself.

Weight matrices are stored as (input_dim, output_dim), which means a
projection of a single position is simply `row @ W`.

Functions:
    create_rng: Build the random generator injected into initialization
    initialize_matrix: Uniform [-0.5, 0.5] random weight matrix
    dot_product: Sum of elementwise products of two vectors
    vector_matrix_multiply: Row vector times matrix
    matrix_vector_multiply: Matrix times column vector
    add: Elementwise sum
    layer_norm: Per-vector normalization with scale and shift
"""

from typing import Optional

import numpy as np

DTYPE = np.float32


def create_rng(seed: Optional[int] = None) -> np.random.Generator:
    """
    Create the random generator used to initialize weights.

    Every component that owns weights takes a generator explicitly, so a
    single seeded generator makes a whole model reproducible.

    Args:
        seed: Optional seed. None gives a non-reproducible generator.

    Returns:
        A numpy Generator instance
    """
    return np.random.default_rng(seed)


def initialize_matrix(rows: int, cols: int, rng: np.random.Generator) -> np.ndarray:
    """
    Create a rows x cols matrix of independent uniform values in [-0.5, 0.5].

    Args:
        rows: Number of rows (input dimension for weight matrices)
        cols: Number of columns (output dimension for weight matrices)
        rng: Generator providing the randomness

    Returns:
        Float32 array of shape (rows, cols)
    """
    if rows < 0 or cols < 0:
        raise ValueError(f"Matrix dimensions must be non-negative, got {rows}x{cols}")

    return rng.uniform(-0.5, 0.5, size=(rows, cols)).astype(DTYPE)


def as_vector(values, name: str = "vector") -> np.ndarray:
    """Convert to a 1-D float32 array, rejecting anything else."""
    vector = np.asarray(values, dtype=DTYPE)
    if vector.ndim != 1:
        raise ValueError(f"{name} must be 1-D, got shape {vector.shape}")
    return vector


def as_matrix(values, name: str = "matrix") -> np.ndarray:
    """Convert to a 2-D row-major float32 array, rejecting anything else."""
    matrix = np.ascontiguousarray(values, dtype=DTYPE)
    if matrix.ndim != 2:
        raise ValueError(f"{name} must be 2-D, got shape {matrix.shape}")
    return matrix


def dot_product(a, b) -> float:
    """
    Compute the dot product of two equal-length vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Scalar sum of a[i] * b[i]
    """
    a = as_vector(a, "a")
    b = as_vector(b, "b")
    if a.shape != b.shape:
        raise ValueError(
            f"Cannot take dot product of vectors with lengths {a.shape[0]} and {b.shape[0]}"
        )
    return float(np.dot(a, b))


def vector_matrix_multiply(vector, matrix) -> np.ndarray:
    """
    Multiply a row vector by a matrix: vector @ matrix.

    Args:
        vector: Vector of length matrix.rows
        matrix: Matrix of shape (rows, cols)

    Returns:
        Vector of length cols
    """
    vector = as_vector(vector)
    matrix = as_matrix(matrix)
    if vector.shape[0] != matrix.shape[0]:
        raise ValueError(
            f"Vector length ({vector.shape[0]}) must equal matrix row count "
            f"({matrix.shape[0]})"
        )
    return vector @ matrix


def matrix_vector_multiply(matrix, vector) -> np.ndarray:
    """
    Multiply a matrix by a column vector: matrix @ vector.

    Args:
        matrix: Matrix of shape (rows, cols)
        vector: Vector of length cols

    Returns:
        Vector of length rows
    """
    matrix = as_matrix(matrix)
    vector = as_vector(vector)
    if matrix.shape[1] != vector.shape[0]:
        raise ValueError(
            f"Matrix column count ({matrix.shape[1]}) must equal vector length "
            f"({vector.shape[0]})"
        )
    return matrix @ vector


def add(a, b) -> np.ndarray:
    """Elementwise sum of two arrays with identical shapes."""
    a = np.asarray(a, dtype=DTYPE)
    b = np.asarray(b, dtype=DTYPE)
    if a.shape != b.shape:
        raise ValueError(f"Cannot add arrays with shapes {a.shape} and {b.shape}")
    return a + b


def layer_norm(
    input_tensor, gamma, beta, epsilon: float = 1e-5
) -> np.ndarray:
    """
    Normalize each vector along the last axis, then scale and shift.

    Formula:
        y = gamma * (x - mean) / sqrt(var + eps) + beta

    The variance is the population variance (divides by N). A 2-D input is
    normalized row by row, so each sequence position is handled on its own.

    Args:
        input_tensor: Vector, or matrix of row vectors
        gamma: Scale vector, length equal to the feature dimension
        beta: Shift vector, length equal to the feature dimension
        epsilon: Small constant added to the variance

    Returns:
        Array of the same shape as input_tensor
    """
    input_tensor = np.asarray(input_tensor, dtype=DTYPE)
    gamma = as_vector(gamma, "gamma")
    beta = as_vector(beta, "beta")

    features = input_tensor.shape[-1]
    if gamma.shape[0] != features or beta.shape[0] != features:
        raise ValueError(
            f"gamma ({gamma.shape[0]}) and beta ({beta.shape[0]}) must match the "
            f"feature dimension ({features})"
        )

    mean = np.mean(input_tensor, axis=-1, keepdims=True)
    variance = np.var(input_tensor, axis=-1, keepdims=True)
    normalized = (input_tensor - mean) / np.sqrt(variance + epsilon)

    return (gamma * normalized + beta).astype(DTYPE)
