"""
Multi-Head Attention Mechanism

This module implements the core attention mechanism from the Transformer
architecture: scaled dot-product attention, the head split/merge around it,
and the two ways it is wired in an encoder/decoder model.

    SelfAttention:  Q, K and V all come from the same sequence
    CrossAttention: Q comes from the decoder, K and V from the encoder output

Reference: "Attention Is All You Need" (Vaswani et al., 2017) Section 3.2
           https://arxiv.org/abs/1706.03762

Functions:
    scaled_dot_product_attention: Core attention computation
    create_causal_mask: Lower-triangular "may attend" mask
    split_heads / merge_heads: Column-block slicing of projected sequences

Classes:
    MultiHeadAttention: Projections plus per-head attention
    SelfAttention: Self-attention with optional causal masking
    CrossAttention: Encoder-decoder attention
"""

from typing import Optional, Tuple

import numpy as np

from transformer_core.activations import softmax
from transformer_core.layers import Linear
from transformer_core.numeric import DTYPE, as_matrix

MASKED_SCORE = -1e9


def create_causal_mask(query_length: int, key_length: Optional[int] = None) -> np.ndarray:
    """
    Create a causal (autoregressive) attention mask.

    Each query position may attend to itself and to earlier key positions,
    never to later ones.

    Args:
        query_length: Number of query positions
        key_length: Number of key positions (defaults to query_length)

    Returns:
        mask: Boolean array of shape (query_length, key_length)
              True where attention is allowed, False where masked

    Example:
        For query_length=3:
        [[True, False, False],   # Position 0 can only see position 0
         [True, True,  False],   # Position 1 can see 0, 1
         [True, True,  True ]]   # Position 2 can see all
    """
    if key_length is None:
        key_length = query_length
    return np.tril(np.ones((query_length, key_length), dtype=bool))


def scaled_dot_product_attention(
    query: np.ndarray,
    key: np.ndarray,
    value: np.ndarray,
    mask: bool = False,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Compute Scaled Dot-Product Attention for a single head.

    Mathematical Formula (from the paper):
        Attention(Q, K, V) = softmax(Q @ K^T / sqrt(d_k)) @ V

    Step-by-step:
        1. scores[i][j] = Q[i] . K[j] / sqrt(d_k)
        2. If masking, scores[i][j] = -1e9 for every j > i
        3. Softmax each row to get attention weights
        4. Output row i = sum_j weights[i][j] * V[j]

    With masking, output row i only depends on key/value rows 0..i, and
    position 0 attends only to itself.

    Args:
        query: Query matrix of shape (seq_len_q, d_k)
        key: Key matrix of shape (seq_len_k, d_k)
        value: Value matrix of shape (seq_len_k, d_v)
        mask: Whether to apply the causal mask

    Returns:
        output: Attention output of shape (seq_len_q, d_v)
        attention_weights: Attention weights of shape (seq_len_q, seq_len_k)
    """
    query = as_matrix(query, "query")
    key = as_matrix(key, "key")
    value = as_matrix(value, "value")

    if query.shape[1] != key.shape[1]:
        raise ValueError(
            f"Query and key dimensions must match, got {query.shape[1]} and {key.shape[1]}"
        )
    if key.shape[0] != value.shape[0]:
        raise ValueError(
            f"Key and value must have the same number of positions, "
            f"got {key.shape[0]} and {value.shape[0]}"
        )

    d_k = query.shape[-1]

    # Step 1: Raw scores, scaled by sqrt(d_k)
    # Shape: (seq_q, d_k) @ (d_k, seq_k) -> (seq_q, seq_k)
    scores = (query @ key.T) / np.sqrt(DTYPE(d_k))

    # Step 2: Forbid attending to future positions
    if mask:
        allowed = create_causal_mask(query.shape[0], key.shape[0])
        scores = np.where(allowed, scores, DTYPE(MASKED_SCORE))

    # Step 3: Each query row becomes a probability distribution over keys
    attention_weights = softmax(scores, axis=-1)

    # Step 4: Weighted combination of value rows
    # Shape: (seq_q, seq_k) @ (seq_k, d_v) -> (seq_q, d_v)
    output = attention_weights @ value

    return output, attention_weights


def split_heads(projected: np.ndarray, num_heads: int) -> np.ndarray:
    """
    Slice a projected sequence into per-head column blocks.

    Head h receives columns [h * head_dim, (h + 1) * head_dim).

    Args:
        projected: Matrix of shape (seq_len, embedding_dim)
        num_heads: Number of heads

    Returns:
        Array of shape (num_heads, seq_len, head_dim)
    """
    seq_len, embedding_dim = projected.shape
    head_dim = embedding_dim // num_heads
    return projected.reshape(seq_len, num_heads, head_dim).transpose(1, 0, 2)


def merge_heads(head_outputs: np.ndarray) -> np.ndarray:
    """
    Inverse of split_heads: write every head back into its column block.

    Args:
        head_outputs: Array of shape (num_heads, seq_len, head_dim)

    Returns:
        Matrix of shape (seq_len, num_heads * head_dim)
    """
    num_heads, seq_len, head_dim = head_outputs.shape
    return np.ascontiguousarray(
        head_outputs.transpose(1, 0, 2).reshape(seq_len, num_heads * head_dim)
    )


class MultiHeadAttention:
    """
    Multi-Head Attention Layer.

    Instead of performing a single attention function, multi-head attention
    projects queries, keys, and values, splits them into h heads, runs
    attention on each head independently, and concatenates the results.

    Mathematical Formula:
        MultiHead(Q, K, V) = Concat(head_1, ..., head_h) @ W^O
        where head_i = Attention(Q @ W^Q_i, K @ W^K_i, V @ W^V_i)

    Architecture:
        1. Linear projections: Q, K, V each projected to d_model dimensions
        2. Split into h heads: each head has dimension d_k = d_model / h
        3. Attention per head
        4. Concatenate: heads go back into their column blocks
        5. Final projection through W^O

    Subclasses decide where Q, K and V come from.

    Attributes:
        embedding_dimension: Total dimension of the model (d_model)
        num_heads: Number of attention heads (h)
        head_dimension: Dimension of each head (d_k = d_model / h)
        query_projection: W^Q, shape (d_model, d_model)
        key_projection: W^K, shape (d_model, d_model)
        value_projection: W^V, shape (d_model, d_model)
        output_projection: W^O, shape (d_model, d_model)
        last_attention_weights: Weights of the latest call, (heads, seq_q, seq_k)

    Reference: "Attention Is All You Need" Section 3.2.2
    """

    def __init__(
        self, embedding_dimension: int, num_heads: int, rng: np.random.Generator
    ):
        """
        Initialize Multi-Head Attention layer.

        Args:
            embedding_dimension: Size of input/output embeddings (d_model)
            num_heads: Number of attention heads
            rng: Generator used for the four projection matrices

        Raises:
            ValueError: If embedding_dimension is not divisible by num_heads
        """
        if num_heads <= 0:
            raise ValueError(f"Number of heads must be positive, got {num_heads}")
        if embedding_dimension % num_heads != 0:
            raise ValueError(
                f"Embedding dimension ({embedding_dimension}) must be divisible by "
                f"number of heads ({num_heads})"
            )

        self.embedding_dimension = embedding_dimension
        self.num_heads = num_heads
        self.head_dimension = embedding_dimension // num_heads

        self.query_projection = Linear(
            embedding_dimension, embedding_dimension, rng, use_bias=False
        )
        self.key_projection = Linear(
            embedding_dimension, embedding_dimension, rng, use_bias=False
        )
        self.value_projection = Linear(
            embedding_dimension, embedding_dimension, rng, use_bias=False
        )
        self.output_projection = Linear(
            embedding_dimension, embedding_dimension, rng, use_bias=False
        )

        self.last_attention_weights = None

    def _check_input(self, tensor: np.ndarray, name: str) -> np.ndarray:
        tensor = as_matrix(tensor, name)
        if tensor.shape[1] != self.embedding_dimension:
            raise ValueError(
                f"{name} must have {self.embedding_dimension} columns, "
                f"got {tensor.shape[1]}"
            )
        return tensor

    def attend(
        self,
        query_input: np.ndarray,
        key_value_input: np.ndarray,
        mask: bool = False,
    ) -> np.ndarray:
        """
        Run the projection / per-head attention / concat / output pipeline.

        Args:
            query_input: Sequence the queries are projected from, (seq_q, d_model)
            key_value_input: Sequence keys and values are projected from, (seq_k, d_model)
            mask: Whether to apply the causal mask inside every head

        Returns:
            output: Shape (seq_q, d_model)
        """
        query_input = self._check_input(query_input, "query_input")
        key_value_input = self._check_input(key_value_input, "key_value_input")

        # Step 1: Project every position independently (row @ W)
        projected_query = self.query_projection.forward(query_input)
        projected_key = self.key_projection.forward(key_value_input)
        projected_value = self.value_projection.forward(key_value_input)

        # Step 2: Column blocks per head, (heads, seq, head_dim)
        query_heads = split_heads(projected_query, self.num_heads)
        key_heads = split_heads(projected_key, self.num_heads)
        value_heads = split_heads(projected_value, self.num_heads)

        # Step 3: Attention per head; each head writes a disjoint block
        head_outputs = np.empty(
            (self.num_heads, query_input.shape[0], self.head_dimension), dtype=DTYPE
        )
        head_weights = np.empty(
            (self.num_heads, query_input.shape[0], key_value_input.shape[0]),
            dtype=DTYPE,
        )
        for head in range(self.num_heads):
            head_outputs[head], head_weights[head] = scaled_dot_product_attention(
                query_heads[head], key_heads[head], value_heads[head], mask=mask
            )
        self.last_attention_weights = head_weights

        # Step 4: Concatenate heads back into (seq_q, d_model)
        concatenated = merge_heads(head_outputs)

        # Step 5: Final output projection
        return self.output_projection.forward(concatenated)

    def get_parameters(self) -> dict:
        """Return all projection weights."""
        return {
            "query_weight": self.query_projection.weights,
            "key_weight": self.key_projection.weights,
            "value_weight": self.value_projection.weights,
            "output_weight": self.output_projection.weights,
        }

    def set_parameters(self, params: dict) -> None:
        """
        Set parameters from a dictionary.

        Args:
            params: Dictionary mapping parameter names to arrays
        """
        if "query_weight" in params:
            self.query_projection.set_parameters({"weight": params["query_weight"]})
        if "key_weight" in params:
            self.key_projection.set_parameters({"weight": params["key_weight"]})
        if "value_weight" in params:
            self.value_projection.set_parameters({"weight": params["value_weight"]})
        if "output_weight" in params:
            self.output_projection.set_parameters({"weight": params["output_weight"]})


class SelfAttention(MultiHeadAttention):
    """
    Multi-head self-attention: queries, keys and values share one input.

    With mask=True (decoder mode), every position only sees itself and the
    positions before it.
    """

    def forward(self, input_tensor: np.ndarray, mask: bool = False) -> np.ndarray:
        """
        Args:
            input_tensor: Sequence of shape (seq_len, d_model)
            mask: Whether to apply causal masking

        Returns:
            Output of shape (seq_len, d_model)
        """
        return self.attend(input_tensor, input_tensor, mask=mask)


class CrossAttention(MultiHeadAttention):
    """
    Multi-head encoder-decoder attention.

    Queries are projected from the decoder sequence; keys and values from the
    encoder output. The two sequences may have different lengths, and no
    causal mask applies since the whole source sequence is visible.
    """

    def forward(
        self, query_input: np.ndarray, key_value_input: np.ndarray
    ) -> np.ndarray:
        """
        Args:
            query_input: Decoder sequence, shape (seq_q, d_model)
            key_value_input: Encoder output, shape (seq_k, d_model)

        Returns:
            Output of shape (seq_q, d_model)
        """
        return self.attend(query_input, key_value_input, mask=False)
