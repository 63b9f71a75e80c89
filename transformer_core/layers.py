"""
Neural Network Layers for the Transformer Forward Pass

This module implements the parameter-holding building blocks used by the
attention and transformer modules. Only the forward pass exists: weights are
drawn once at construction and never updated.

All implementations are in pure NumPy.

Classes:
    Linear: Fully connected layer (y = x @ W + b)
    LayerNorm: Layer normalization with gamma/beta
    Embedding: Token ID to dense vector lookup table
    PositionalEncoding: Sinusoidal position encodings

Reference:
    - "Attention Is All You Need" (Vaswani et al., 2017)
    - "Layer Normalization" (Ba et al., 2016)
"""

import numpy as np

from transformer_core.numeric import (
    DTYPE,
    as_matrix,
    as_vector,
    initialize_matrix,
    layer_norm,
)


class Linear:
    """
    Fully Connected (Linear) Layer.

    Computes the affine transformation: y = x @ W + b

    In the transformer it is used for:
    - Query, Key, Value and output projections in attention (no bias)
    - The two feed-forward layers (zero-initialized bias)
    - The output projection to the vocabulary

    Attributes:
        weights: Weight matrix of shape (input_features, output_features)
        bias: Bias vector of shape (output_features,) or None

    Weight Initialization:
        Uniform in [-0.5, 0.5] from the injected generator.
    """

    def __init__(
        self,
        input_features: int,
        output_features: int,
        rng: np.random.Generator,
        use_bias: bool = True,
    ):
        """
        Initialize Linear layer.

        Args:
            input_features: Size of input dimension
            output_features: Size of output dimension
            rng: Generator used for the weight draw
            use_bias: Whether to include a bias term
        """
        self.input_features = input_features
        self.output_features = output_features
        self.use_bias = use_bias

        self.weights = initialize_matrix(input_features, output_features, rng)

        if use_bias:
            self.bias = np.zeros(output_features, dtype=DTYPE)
        else:
            self.bias = None

    def forward(self, input_tensor: np.ndarray) -> np.ndarray:
        """
        Forward pass: y = x @ W + b

        Args:
            input_tensor: A single vector (input_features,) or a matrix of
                          position vectors (seq_len, input_features)

        Returns:
            output_tensor: Shape (output_features,) or (seq_len, output_features)
        """
        input_tensor = np.asarray(input_tensor, dtype=DTYPE)
        if input_tensor.shape[-1] != self.input_features:
            raise ValueError(
                f"Linear layer expects {self.input_features} input features, "
                f"got {input_tensor.shape[-1]}"
            )

        # Each row is projected independently: (..., in) @ (in, out) -> (..., out)
        output_tensor = input_tensor @ self.weights

        if self.use_bias:
            output_tensor = output_tensor + self.bias

        return output_tensor

    def get_parameters(self) -> dict:
        """Return dictionary of parameters."""
        params = {"weight": self.weights}
        if self.use_bias:
            params["bias"] = self.bias
        return params

    def set_parameters(self, params: dict) -> None:
        """
        Replace parameters, checking that shapes are unchanged.

        Args:
            params: Dictionary with optional "weight" and "bias" entries
        """
        if "weight" in params:
            weights = as_matrix(params["weight"], "weight")
            if weights.shape != self.weights.shape:
                raise ValueError(
                    f"Weight shape {weights.shape} does not match {self.weights.shape}"
                )
            self.weights = weights
        if "bias" in params and self.use_bias:
            bias = as_vector(params["bias"], "bias")
            if bias.shape != self.bias.shape:
                raise ValueError(
                    f"Bias shape {bias.shape} does not match {self.bias.shape}"
                )
            self.bias = bias

    @property
    def weight(self) -> np.ndarray:
        """Alias for weights."""
        return self.weights


class LayerNorm:
    """
    Layer Normalization.

    Formula:
        y = gamma * (x - mean) / sqrt(var + eps) + beta

    Where:
        - mean and var are computed across the last dimension (features)
        - gamma starts at ones and beta at zeros
        - eps is a small constant for numerical stability

    Each sequence position is normalized on its own.

    Reference: "Layer Normalization" (Ba et al., 2016)
    """

    def __init__(self, normalized_shape: int, epsilon: float = 1e-5):
        """
        Initialize LayerNorm.

        Args:
            normalized_shape: Size of the last dimension to normalize over
            epsilon: Small constant for numerical stability
        """
        self.normalized_shape = normalized_shape
        self.epsilon = epsilon

        self.gamma = np.ones(normalized_shape, dtype=DTYPE)
        self.beta = np.zeros(normalized_shape, dtype=DTYPE)

    def forward(self, input_tensor: np.ndarray) -> np.ndarray:
        """
        Normalize input and apply the gamma/beta affine transformation.

        Args:
            input_tensor: Input of shape (..., normalized_shape)

        Returns:
            Normalized output of same shape
        """
        return layer_norm(input_tensor, self.gamma, self.beta, self.epsilon)

    def get_parameters(self) -> dict:
        """Return dictionary of parameters."""
        return {"gamma": self.gamma, "beta": self.beta}

    def set_parameters(self, params: dict) -> None:
        for name in ("gamma", "beta"):
            if name in params:
                value = as_vector(params[name], name)
                if value.shape != (self.normalized_shape,):
                    raise ValueError(
                        f"{name} must have length {self.normalized_shape}, "
                        f"got {value.shape[0]}"
                    )
                setattr(self, name, value)


class Embedding:
    """
    Embedding Layer (Lookup Table).

    Converts discrete token IDs into dense vectors by looking up rows in the
    embedding matrix.

    Reference: "Attention Is All You Need" Section 3.4
    """

    def __init__(
        self,
        vocabulary_size: int,
        embedding_dimension: int,
        rng: np.random.Generator,
    ):
        """
        Initialize Embedding layer.

        Args:
            vocabulary_size: Number of unique tokens in vocabulary
            embedding_dimension: Size of embedding vectors
            rng: Generator used for the table draw
        """
        self.vocabulary_size = vocabulary_size
        self.embedding_dimension = embedding_dimension

        self.embedding_table = initialize_matrix(
            vocabulary_size, embedding_dimension, rng
        )

    def forward(self, token_ids: np.ndarray) -> np.ndarray:
        """
        Look up embeddings for token IDs.

        Args:
            token_ids: Integer array, values in [0, vocabulary_size)

        Returns:
            embeddings: Float array of shape (..., embedding_dimension)
        """
        token_ids = np.asarray(token_ids, dtype=np.int64)
        if token_ids.size and (
            token_ids.min() < 0 or token_ids.max() >= self.vocabulary_size
        ):
            raise ValueError(
                f"Token IDs must be in [0, {self.vocabulary_size}), "
                f"got range [{token_ids.min()}, {token_ids.max()}]"
            )

        return self.embedding_table[token_ids]

    def get_parameters(self) -> dict:
        """Return dictionary of parameters."""
        return {"embedding_table": self.embedding_table}

    def set_parameters(self, params: dict) -> None:
        if "embedding_table" in params:
            table = as_matrix(params["embedding_table"], "embedding_table")
            if table.shape != self.embedding_table.shape:
                raise ValueError(
                    f"Embedding table shape {table.shape} does not match "
                    f"{self.embedding_table.shape}"
                )
            self.embedding_table = table

    @property
    def weight(self) -> np.ndarray:
        """Alias for embedding_table."""
        return self.embedding_table


class PositionalEncoding:
    """
    Sinusoidal Positional Encoding.

    Adds position information to embeddings using fixed sinusoidal patterns.

    Formula (per dimension index i):
        even i: PE(pos, i) = sin(pos / 10000^(2i / d_model))
        odd i:  PE(pos, i) = cos(pos / 10000^(2(i-1) / d_model))

    The table is computed once for every position up to the maximum
    sequence length.

    Reference: "Attention Is All You Need" Section 3.5
    """

    def __init__(self, max_sequence_length: int, embedding_dimension: int):
        """
        Initialize and precompute positional encodings.

        Args:
            max_sequence_length: Maximum sequence length to support
            embedding_dimension: Must match the embedding dimension of the model
        """
        self.max_sequence_length = max_sequence_length
        self.embedding_dimension = embedding_dimension

        self.encoding_table = self._create_encoding_table()

    def _create_encoding_table(self) -> np.ndarray:
        """
        Create the full positional encoding table.

        Returns:
            encoding_table: Array of shape (max_sequence_length, embedding_dimension)
        """
        # Shape: (max_seq, 1)
        positions = np.arange(self.max_sequence_length, dtype=np.float64)[:, np.newaxis]

        # Odd dimensions share the exponent of the even dimension before them
        dimension_indices = np.arange(self.embedding_dimension)
        exponent_indices = dimension_indices - (dimension_indices % 2)
        exponents = (2.0 * exponent_indices) / self.embedding_dimension

        angles = positions / np.power(10000.0, exponents)[np.newaxis, :]

        encoding_table = np.zeros_like(angles)
        encoding_table[:, 0::2] = np.sin(angles[:, 0::2])
        encoding_table[:, 1::2] = np.cos(angles[:, 1::2])

        return encoding_table.astype(DTYPE)

    def get_encoding(self, sequence_length: int) -> np.ndarray:
        """
        Get positional encoding for a specific sequence length.

        Args:
            sequence_length: Length of the sequence (must be <= max_sequence_length)

        Returns:
            encoding: Array of shape (sequence_length, embedding_dimension)
        """
        if sequence_length > self.max_sequence_length:
            raise ValueError(
                f"Sequence length {sequence_length} exceeds maximum {self.max_sequence_length}"
            )

        return self.encoding_table[:sequence_length]

    def forward(self, embeddings: np.ndarray) -> np.ndarray:
        """
        Add positional encoding to input embeddings.

        Args:
            embeddings: Input embeddings of shape (sequence_length, embedding_dimension)

        Returns:
            Output with positional encoding added, same shape as input
        """
        sequence_length = embeddings.shape[0]
        return embeddings + self.get_encoding(sequence_length)
