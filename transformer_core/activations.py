"""
Activation Functions for the Forward Pass

Functions:
    softmax: Converts scores to a probability distribution
    relu: Rectified Linear Unit, used inside the feed-forward sublayer

Reference:
    "Attention Is All You Need" (Vaswani et al., 2017) - Softmax in attention,
    ReLU in the position-wise feed-forward network (Section 3.3)
"""

import numpy as np

from transformer_core.numeric import DTYPE


def softmax(scores: np.ndarray, axis: int = -1) -> np.ndarray:
    """
    Compute softmax activation function.

    Converts a vector of arbitrary real values into a probability
    distribution where all values are non-negative and sum to 1.

    Mathematical Formula:
        softmax(x)_i = exp(x_i) / sum_j(exp(x_j))

    Numerical Stability:
        We subtract max(x) from all values before exponentiation to prevent
        overflow. This doesn't change the result because:
        exp(x_i - max) / sum(exp(x_j - max)) = exp(x_i) / sum(exp(x_j))

        After the shift the largest term is exp(0) = 1, so the sum is never
        zero for finite input, including all-equal scores.

    Args:
        scores: Input array of any shape. Softmax is applied along the
                specified axis.
        axis: The axis along which to compute softmax. Default is -1 (last axis),
              which is standard for attention mechanisms.

    Returns:
        probabilities: Array of same shape as input, with softmax applied along
                      the specified axis. Values along that axis sum to 1.

    Example:
        >>> probs = softmax(np.array([1.0, 2.0, 3.0]))
        >>> print(probs)  # [0.09, 0.24, 0.67]
    """
    scores = np.asarray(scores, dtype=DTYPE)
    if scores.size == 0 or scores.shape[axis] == 0:
        raise ValueError("softmax requires at least one score along the given axis")

    # Step 1: Subtract maximum for numerical stability
    max_score = np.max(scores, axis=axis, keepdims=True)
    stable_scores = scores - max_score

    # Step 2: Compute exponentials (all <= 1)
    exponentials = np.exp(stable_scores)

    # Step 3: Normalize to get probabilities
    sum_of_exponentials = np.sum(exponentials, axis=axis, keepdims=True)
    probabilities = exponentials / sum_of_exponentials

    return probabilities


def relu(x: np.ndarray) -> np.ndarray:
    """
    Compute ReLU (Rectified Linear Unit) activation.

    Formula:
        ReLU(x) = max(0, x)

    Args:
        x: Input array of any shape

    Returns:
        Array of same shape with negatives replaced by zero
    """
    return np.maximum(np.asarray(x, dtype=DTYPE), 0.0).astype(DTYPE)
