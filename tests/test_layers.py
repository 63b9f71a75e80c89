"""
Tests for neural network layers module.

Tests cover:
- Linear: weight layout, forward pass, bias handling, parameter replacement
- LayerNorm: normalization, initial gamma/beta
- Embedding: lookup and range checks
- PositionalEncoding: formula, bounds, sequence-length limit
"""

import numpy as np
import pytest


@pytest.fixture
def rng():
    return np.random.default_rng(42)


class TestLinear:
    """
    Test suite for Linear (fully connected) layer.

    Linear layer computes: y = x @ W + b
    where W has shape (input_features, output_features)
    """

    def test_linear_weight_layout(self, rng):
        """Weights are stored as (input_features, output_features)."""
        from transformer_core.layers import Linear

        linear_layer = Linear(input_features=8, output_features=16, rng=rng)

        assert linear_layer.weights.shape == (8, 16)
        assert linear_layer.bias.shape == (16,)
        assert np.all(linear_layer.bias == 0.0), "Bias should start at zero"

    def test_linear_vector_input(self, rng):
        from transformer_core.layers import Linear

        linear_layer = Linear(input_features=4, output_features=3, rng=rng)
        output = linear_layer.forward(np.ones(4))

        assert output.shape == (3,)

    def test_linear_matrix_input(self, rng):
        """Each row of a sequence is projected independently."""
        from transformer_core.layers import Linear

        linear_layer = Linear(input_features=4, output_features=3, rng=rng)
        input_tensor = rng.normal(size=(5, 4))
        output_tensor = linear_layer.forward(input_tensor)

        assert output_tensor.shape == (5, 3)
        np.testing.assert_allclose(
            output_tensor[2], linear_layer.forward(input_tensor[2]), rtol=1e-6
        )

    def test_linear_no_bias(self, rng):
        """Linear layer without bias should work correctly."""
        from transformer_core.layers import Linear

        linear_layer = Linear(input_features=4, output_features=8, rng=rng, use_bias=False)

        assert linear_layer.bias is None, "Bias should be None when use_bias=False"

        input_tensor = rng.normal(size=(2, 4)).astype(np.float32)
        expected = input_tensor @ linear_layer.weights
        assert np.allclose(linear_layer.forward(input_tensor), expected), (
            "Forward pass should match manual computation without bias"
        )

    def test_linear_with_bias(self, rng):
        from transformer_core.layers import Linear

        linear_layer = Linear(input_features=2, output_features=2, rng=rng)
        linear_layer.set_parameters(
            {"weight": np.array([[1.0, 2.0], [3.0, 4.0]]), "bias": np.array([0.5, -0.5])}
        )

        np.testing.assert_allclose(linear_layer.forward([1.0, 2.0]), [7.5, 9.5])

    def test_linear_wrong_input_width(self, rng):
        from transformer_core.layers import Linear

        linear_layer = Linear(input_features=4, output_features=3, rng=rng)

        with pytest.raises(ValueError, match="expects 4 input features"):
            linear_layer.forward(np.ones(5))

    def test_set_parameters_rejects_new_shape(self, rng):
        from transformer_core.layers import Linear

        linear_layer = Linear(input_features=4, output_features=3, rng=rng)

        with pytest.raises(ValueError):
            linear_layer.set_parameters({"weight": np.ones((3, 4))})


class TestLayerNorm:
    """
    LayerNorm normalizes across the feature dimension:
        y = gamma * (x - mean) / sqrt(var + eps) + beta

    Reference: "Layer Normalization" (Ba et al., 2016)
    """

    def test_layernorm_output_shape(self, rng):
        """LayerNorm should preserve input shape."""
        from transformer_core.layers import LayerNorm

        layer_norm = LayerNorm(normalized_shape=16)
        input_tensor = rng.normal(size=(10, 16))

        assert layer_norm.forward(input_tensor).shape == input_tensor.shape

    def test_layernorm_normalized_statistics(self, rng):
        """LayerNorm output should have mean≈0 and variance≈1 along normalized axis."""
        from transformer_core.layers import LayerNorm

        layer_norm = LayerNorm(normalized_shape=128)
        input_tensor = rng.normal(size=(10, 128)) * 5 + 3
        output_tensor = layer_norm.forward(input_tensor)

        assert np.allclose(np.mean(output_tensor, axis=-1), 0.0, atol=1e-5), (
            "Normalized output should have mean ≈ 0"
        )
        assert np.allclose(np.var(output_tensor, axis=-1), 1.0, atol=1e-4), (
            "Normalized output should have variance ≈ 1"
        )

    def test_layernorm_initial_parameters(self):
        from transformer_core.layers import LayerNorm

        layer_norm = LayerNorm(normalized_shape=64)

        assert layer_norm.gamma.shape == (64,)
        assert layer_norm.beta.shape == (64,)
        assert np.allclose(layer_norm.gamma, 1.0), "Gamma should be initialized to 1"
        assert np.allclose(layer_norm.beta, 0.0), "Beta should be initialized to 0"


class TestEmbedding:
    def test_embedding_lookup(self, rng):
        from transformer_core.layers import Embedding

        embedding = Embedding(vocabulary_size=10, embedding_dimension=4, rng=rng)
        output = embedding.forward(np.array([3, 7, 3]))

        assert output.shape == (3, 4)
        np.testing.assert_array_equal(output[0], embedding.embedding_table[3])
        np.testing.assert_array_equal(output[0], output[2])

    def test_embedding_table_range(self, rng):
        from transformer_core.layers import Embedding

        embedding = Embedding(vocabulary_size=100, embedding_dimension=8, rng=rng)

        assert embedding.embedding_table.shape == (100, 8)
        assert np.all(np.abs(embedding.embedding_table) <= 0.5)

    def test_embedding_out_of_range(self, rng):
        from transformer_core.layers import Embedding

        embedding = Embedding(vocabulary_size=5, embedding_dimension=4, rng=rng)

        with pytest.raises(ValueError):
            embedding.forward(np.array([0, 5]))


class TestPositionalEncoding:
    """
    even i: sin(pos / 10000^(2i/d)), odd i: cos(pos / 10000^(2(i-1)/d))
    """

    def test_encoding_formula(self):
        from transformer_core.layers import PositionalEncoding

        d = 6
        encoding = PositionalEncoding(max_sequence_length=10, embedding_dimension=d)

        for pos in (0, 1, 7):
            for i in range(d):
                if i % 2 == 0:
                    expected = np.sin(pos / 10000 ** (2.0 * i / d))
                else:
                    expected = np.cos(pos / 10000 ** (2.0 * (i - 1) / d))
                assert encoding.encoding_table[pos, i] == pytest.approx(expected, abs=1e-6)

    def test_position_zero(self):
        """Position 0 is sin(0)=0 on even dimensions and cos(0)=1 on odd ones."""
        from transformer_core.layers import PositionalEncoding

        encoding = PositionalEncoding(max_sequence_length=4, embedding_dimension=8)

        np.testing.assert_allclose(encoding.encoding_table[0, 0::2], 0.0)
        np.testing.assert_allclose(encoding.encoding_table[0, 1::2], 1.0)

    def test_encoding_bounded(self):
        from transformer_core.layers import PositionalEncoding

        encoding = PositionalEncoding(max_sequence_length=100, embedding_dimension=16)

        assert encoding.encoding_table.shape == (100, 16)
        assert np.all(np.abs(encoding.encoding_table) <= 1.0)

    def test_sequence_too_long(self):
        from transformer_core.layers import PositionalEncoding

        encoding = PositionalEncoding(max_sequence_length=4, embedding_dimension=8)

        with pytest.raises(ValueError, match="exceeds maximum"):
            encoding.get_encoding(5)

    def test_forward_adds_encoding(self):
        from transformer_core.layers import PositionalEncoding

        encoding = PositionalEncoding(max_sequence_length=8, embedding_dimension=4)
        embeddings = np.ones((3, 4), dtype=np.float32)

        np.testing.assert_allclose(
            encoding.forward(embeddings), 1.0 + encoding.encoding_table[:3]
        )
