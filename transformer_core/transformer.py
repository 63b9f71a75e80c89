"""
Transformer Architecture Components

This module implements the encoder/decoder building blocks: the feed-forward
network, the residual add-and-norm sublayer, the encoder and decoder layers,
and the stacks that chain them.

Both layer types use the Post-LN arrangement of the 2017 paper: every
sublayer output is added back to its input and the sum is layer-normalized.

    Encoder layer:  self-attention -> add & norm -> FFN -> add & norm
    Decoder layer:  masked self-attention -> add & norm
                    -> cross-attention over the encoder output -> add & norm
                    -> FFN -> add & norm

Reference: "Attention Is All You Need" (Vaswani et al., 2017) Section 3.1, 3.3

Classes:
    FeedForwardNetwork: Position-wise feed-forward network
    AddAndNorm: Residual connection followed by LayerNorm
    EncoderLayer: Single encoder block
    DecoderLayer: Single decoder block
    Encoder: Stack of encoder layers
    Decoder: Stack of decoder layers
"""

from typing import List

import numpy as np

from transformer_core.activations import relu
from transformer_core.attention import CrossAttention, SelfAttention
from transformer_core.layers import LayerNorm, Linear
from transformer_core.numeric import as_matrix


def _prefixed(prefix: str, params: dict) -> dict:
    return {f"{prefix}{k}": v for k, v in params.items()}


def _unprefixed(prefix: str, params: dict) -> dict:
    return {k[len(prefix) :]: v for k, v in params.items() if k.startswith(prefix)}


class FeedForwardNetwork:
    """
    Position-wise Feed-Forward Network.

    This is applied independently to each position in the sequence. It
    consists of two linear transformations with a ReLU in between:

        FFN(x) = max(0, x @ W_1 + b_1) @ W_2 + b_2

    Both biases start at zero.

    Reference: "Attention Is All You Need" Section 3.3

    Attributes:
        embedding_dimension: Input/output dimension (d_model)
        hidden_dimension: Inner dimension (d_ff)
        linear_1: First linear transformation (expansion)
        linear_2: Second linear transformation (compression)
    """

    def __init__(
        self,
        embedding_dimension: int,
        hidden_dimension: int,
        rng: np.random.Generator,
    ):
        """
        Initialize Feed-Forward Network.

        Args:
            embedding_dimension: Input and output dimension
            hidden_dimension: Inner hidden dimension
            rng: Generator used for W_1 and W_2
        """
        self.embedding_dimension = embedding_dimension
        self.hidden_dimension = hidden_dimension

        self.linear_1 = Linear(embedding_dimension, hidden_dimension, rng)
        self.linear_2 = Linear(hidden_dimension, embedding_dimension, rng)

    def forward(self, input_tensor: np.ndarray) -> np.ndarray:
        """
        Forward pass through the feed-forward network.

        Args:
            input_tensor: One position (embedding_dim,) or a sequence
                          (seq_len, embedding_dim); rows never interact

        Returns:
            Output with the same shape as the input
        """
        hidden = relu(self.linear_1.forward(input_tensor))
        return self.linear_2.forward(hidden)

    def get_parameters(self) -> dict:
        """Return all parameters."""
        params = {}
        params.update(_prefixed("ffn_linear1_", self.linear_1.get_parameters()))
        params.update(_prefixed("ffn_linear2_", self.linear_2.get_parameters()))
        return params

    def set_parameters(self, params: dict) -> None:
        """
        Set parameters from a dictionary.

        Args:
            params: Dictionary mapping parameter names to arrays
        """
        self.linear_1.set_parameters(_unprefixed("ffn_linear1_", params))
        self.linear_2.set_parameters(_unprefixed("ffn_linear2_", params))


class AddAndNorm:
    """
    Residual sublayer wrapper: LayerNorm(residual + sublayer_output).

    Normalization is applied per position.
    """

    def __init__(self, embedding_dimension: int):
        self.layer_norm = LayerNorm(embedding_dimension)

    def forward(self, residual: np.ndarray, sublayer_output: np.ndarray) -> np.ndarray:
        if residual.shape != sublayer_output.shape:
            raise ValueError(
                f"Residual shape {residual.shape} does not match sublayer output "
                f"shape {sublayer_output.shape}"
            )
        return self.layer_norm.forward(residual + sublayer_output)

    def get_parameters(self) -> dict:
        return self.layer_norm.get_parameters()

    def set_parameters(self, params: dict) -> None:
        self.layer_norm.set_parameters(params)


class EncoderLayer:
    """
    Single Transformer Encoder Block.

    Architecture (Post-LN):
        x -> SelfAttention -> + x -> LayerNorm (ln1) = h
        h -> FeedForward   -> + h -> LayerNorm (ln2) = output

    Attention is the only step that mixes information across positions;
    everything else is applied row by row. Output shape equals input shape.
    """

    def __init__(
        self,
        embedding_dimension: int,
        num_heads: int,
        ffn_hidden_dimension: int,
        rng: np.random.Generator,
    ):
        """
        Initialize an Encoder Block.

        Args:
            embedding_dimension: Model dimension (d_model)
            num_heads: Number of attention heads
            ffn_hidden_dimension: FFN hidden dimension
            rng: Generator shared by all sublayers of this block
        """
        self.embedding_dimension = embedding_dimension
        self.num_heads = num_heads

        self.self_attention = SelfAttention(embedding_dimension, num_heads, rng)
        self.attention_add_norm = AddAndNorm(embedding_dimension)

        self.feed_forward = FeedForwardNetwork(
            embedding_dimension, ffn_hidden_dimension, rng
        )
        self.ffn_add_norm = AddAndNorm(embedding_dimension)

    def forward(self, input_tensor: np.ndarray) -> np.ndarray:
        """
        Forward pass through the encoder block.

        Args:
            input_tensor: Input of shape (seq_len, embedding_dim)

        Returns:
            Output of shape (seq_len, embedding_dim)
        """
        input_tensor = _check_sequence(input_tensor, self.embedding_dimension, "input")

        attention_output = self.self_attention.forward(input_tensor, mask=False)
        normed_attention = self.attention_add_norm.forward(
            input_tensor, attention_output
        )

        ffn_output = self.feed_forward.forward(normed_attention)
        return self.ffn_add_norm.forward(normed_attention, ffn_output)

    def get_parameters(self) -> dict:
        """Return all parameters."""
        params = {}
        params.update(_prefixed("ln1_", self.attention_add_norm.get_parameters()))
        params.update(_prefixed("ln2_", self.ffn_add_norm.get_parameters()))
        params.update(_prefixed("attn_", self.self_attention.get_parameters()))
        params.update(self.feed_forward.get_parameters())
        return params

    def set_parameters(self, params: dict) -> None:
        """
        Set parameters from a dictionary.

        Args:
            params: Dictionary mapping parameter names to arrays
        """
        self.attention_add_norm.set_parameters(_unprefixed("ln1_", params))
        self.ffn_add_norm.set_parameters(_unprefixed("ln2_", params))
        self.self_attention.set_parameters(_unprefixed("attn_", params))
        self.feed_forward.set_parameters(params)


class DecoderLayer:
    """
    Single Transformer Decoder Block.

    Architecture (Post-LN):
        y -> Masked SelfAttention             -> + y -> LayerNorm (ln1) = a
        a -> CrossAttention(Q=a, K=V=encoder) -> + a -> LayerNorm (ln2) = b
        b -> FeedForward                      -> + b -> LayerNorm (ln3) = output

    The causal mask keeps output row i independent of target rows after i.
    The encoder output may have a different number of rows than the target.
    """

    def __init__(
        self,
        embedding_dimension: int,
        num_heads: int,
        ffn_hidden_dimension: int,
        rng: np.random.Generator,
    ):
        """
        Initialize a Decoder Block.

        Args:
            embedding_dimension: Model dimension (d_model)
            num_heads: Number of attention heads
            ffn_hidden_dimension: FFN hidden dimension
            rng: Generator shared by all sublayers of this block
        """
        self.embedding_dimension = embedding_dimension
        self.num_heads = num_heads

        self.masked_self_attention = SelfAttention(embedding_dimension, num_heads, rng)
        self.self_attention_add_norm = AddAndNorm(embedding_dimension)

        self.cross_attention = CrossAttention(embedding_dimension, num_heads, rng)
        self.cross_attention_add_norm = AddAndNorm(embedding_dimension)

        self.feed_forward = FeedForwardNetwork(
            embedding_dimension, ffn_hidden_dimension, rng
        )
        self.ffn_add_norm = AddAndNorm(embedding_dimension)

    def forward(
        self, target_input: np.ndarray, encoder_output: np.ndarray
    ) -> np.ndarray:
        """
        Forward pass through the decoder block.

        Args:
            target_input: Target sequence, shape (target_len, embedding_dim)
            encoder_output: Encoder stack output, shape (source_len, embedding_dim)

        Returns:
            Output of shape (target_len, embedding_dim)
        """
        target_input = _check_sequence(
            target_input, self.embedding_dimension, "target_input"
        )
        encoder_output = _check_sequence(
            encoder_output, self.embedding_dimension, "encoder_output"
        )

        # ============ Masked Self-Attention Sub-block ============
        self_attention_output = self.masked_self_attention.forward(
            target_input, mask=True
        )
        normed_self_attention = self.self_attention_add_norm.forward(
            target_input, self_attention_output
        )

        # ============ Cross-Attention Sub-block ============
        cross_attention_output = self.cross_attention.forward(
            query_input=normed_self_attention, key_value_input=encoder_output
        )
        normed_cross_attention = self.cross_attention_add_norm.forward(
            normed_self_attention, cross_attention_output
        )

        # ============ Feed-Forward Sub-block ============
        ffn_output = self.feed_forward.forward(normed_cross_attention)
        return self.ffn_add_norm.forward(normed_cross_attention, ffn_output)

    def get_parameters(self) -> dict:
        """Return all parameters."""
        params = {}
        params.update(_prefixed("ln1_", self.self_attention_add_norm.get_parameters()))
        params.update(_prefixed("ln2_", self.cross_attention_add_norm.get_parameters()))
        params.update(_prefixed("ln3_", self.ffn_add_norm.get_parameters()))
        params.update(
            _prefixed("self_attn_", self.masked_self_attention.get_parameters())
        )
        params.update(_prefixed("cross_attn_", self.cross_attention.get_parameters()))
        params.update(self.feed_forward.get_parameters())
        return params

    def set_parameters(self, params: dict) -> None:
        """
        Set parameters from a dictionary.

        Args:
            params: Dictionary mapping parameter names to arrays
        """
        self.self_attention_add_norm.set_parameters(_unprefixed("ln1_", params))
        self.cross_attention_add_norm.set_parameters(_unprefixed("ln2_", params))
        self.ffn_add_norm.set_parameters(_unprefixed("ln3_", params))
        self.masked_self_attention.set_parameters(_unprefixed("self_attn_", params))
        self.cross_attention.set_parameters(_unprefixed("cross_attn_", params))
        self.feed_forward.set_parameters(params)


class Encoder:
    """
    Stack of Encoder Blocks.

    Every block has its own weights (nothing is shared or tied). The output
    of block k is the input of block k+1.

    Attributes:
        layers: List of EncoderLayer instances
        num_layers: Number of encoder blocks
    """

    def __init__(
        self,
        num_layers: int,
        embedding_dimension: int,
        num_heads: int,
        ffn_hidden_dimension: int,
        rng: np.random.Generator,
    ):
        self.num_layers = num_layers
        self.embedding_dimension = embedding_dimension

        self.layers: List[EncoderLayer] = [
            EncoderLayer(embedding_dimension, num_heads, ffn_hidden_dimension, rng)
            for _ in range(num_layers)
        ]

    def forward(self, input_tensor: np.ndarray) -> np.ndarray:
        """
        Forward pass through all encoder blocks.

        Args:
            input_tensor: Input of shape (seq_len, embedding_dim)

        Returns:
            Output of shape (seq_len, embedding_dim)
        """
        hidden_states = input_tensor
        for layer in self.layers:
            hidden_states = layer.forward(hidden_states)
        return hidden_states

    def get_parameters(self) -> dict:
        """Return all parameters from all blocks."""
        params = {}
        for i, layer in enumerate(self.layers):
            params.update(_prefixed(f"layer_{i}_", layer.get_parameters()))
        return params

    def set_parameters(self, params: dict) -> None:
        for i, layer in enumerate(self.layers):
            layer_params = _unprefixed(f"layer_{i}_", params)
            if layer_params:
                layer.set_parameters(layer_params)


class Decoder:
    """
    Stack of Decoder Blocks.

    Same chaining as the Encoder, except that the same encoder output is
    handed to the cross-attention of every block.

    Attributes:
        layers: List of DecoderLayer instances
        num_layers: Number of decoder blocks
    """

    def __init__(
        self,
        num_layers: int,
        embedding_dimension: int,
        num_heads: int,
        ffn_hidden_dimension: int,
        rng: np.random.Generator,
    ):
        self.num_layers = num_layers
        self.embedding_dimension = embedding_dimension

        self.layers: List[DecoderLayer] = [
            DecoderLayer(embedding_dimension, num_heads, ffn_hidden_dimension, rng)
            for _ in range(num_layers)
        ]

    def forward(
        self, target_input: np.ndarray, encoder_output: np.ndarray
    ) -> np.ndarray:
        """
        Forward pass through all decoder blocks.

        Args:
            target_input: Target sequence, shape (target_len, embedding_dim)
            encoder_output: Encoder stack output, shape (source_len, embedding_dim)

        Returns:
            Output of shape (target_len, embedding_dim)
        """
        hidden_states = target_input
        for layer in self.layers:
            hidden_states = layer.forward(hidden_states, encoder_output)
        return hidden_states

    def get_parameters(self) -> dict:
        """Return all parameters from all blocks."""
        params = {}
        for i, layer in enumerate(self.layers):
            params.update(_prefixed(f"layer_{i}_", layer.get_parameters()))
        return params

    def set_parameters(self, params: dict) -> None:
        for i, layer in enumerate(self.layers):
            layer_params = _unprefixed(f"layer_{i}_", params)
            if layer_params:
                layer.set_parameters(layer_params)


def _check_sequence(tensor: np.ndarray, embedding_dimension: int, name: str) -> np.ndarray:
    tensor = as_matrix(tensor, name)
    if tensor.shape[1] != embedding_dimension:
        raise ValueError(
            f"{name} must have {embedding_dimension} columns, got {tensor.shape[1]}"
        )
    return tensor
