"""
Tests for the Transformer Model Module

Tests the complete model including:
- Configuration validation
- Single-phase construction sized from the vocabulary
- Embedding with positional encoding and unknown tokens
- Forward pass through encoder and decoder
- Next-token prediction and tie-breaking
"""

import logging

import numpy as np
import pytest

from transformer_core.model import (
    DEMO_CORPUS,
    TransformerConfig,
    TransformerModel,
    build_transformer,
    predict_next_word,
)
from transformer_core.tokenizer import NOT_FOUND


class TestTransformerConfig:
    """Test configuration dataclass."""

    def test_default_config(self):
        config = TransformerConfig()

        assert config.embedding_dim == 64
        assert config.num_heads == 4
        assert config.ffn_hidden_dim == 128
        assert config.num_layers == 2
        assert config.max_sequence_length == 100
        assert config.use_decoder

    def test_indivisible_heads_rejected(self):
        with pytest.raises(ValueError, match="divisible"):
            TransformerConfig(embedding_dim=5, num_heads=2)

    @pytest.mark.parametrize(
        "field", ["embedding_dim", "num_heads", "ffn_hidden_dim", "max_sequence_length"]
    )
    def test_non_positive_values_rejected(self, field):
        with pytest.raises(ValueError, match=field):
            TransformerConfig(**{field: 0})


class TestTransformerModel:
    @pytest.fixture
    def small_config(self):
        """Small model config for testing."""
        return TransformerConfig(
            embedding_dim=16,
            num_heads=4,
            ffn_hidden_dim=32,
            num_layers=2,
            max_sequence_length=12,
            seed=0,
        )

    @pytest.fixture
    def model(self, small_config):
        return TransformerModel(small_config, vocab_size=20)

    def test_model_initialization(self, model, small_config):
        assert model.token_embedding.weight.shape == (20, small_config.embedding_dim)
        assert model.output_projection.weight.shape == (small_config.embedding_dim, 20)
        assert len(model.encoder.layers) == small_config.num_layers
        assert len(model.decoder.layers) == small_config.num_layers

    def test_invalid_vocab_size(self, small_config):
        with pytest.raises(ValueError):
            TransformerModel(small_config, vocab_size=0)

    def test_embed_adds_positional_encoding(self, model):
        embeddings = model.embed([3, 5])

        np.testing.assert_allclose(
            embeddings[1],
            model.token_embedding.embedding_table[5]
            + model.positional_encoding.encoding_table[1],
            rtol=1e-6,
        )

    def test_unknown_token_gets_zero_vector(self, model):
        embeddings = model.embed([3, NOT_FOUND, 5])

        np.testing.assert_array_equal(embeddings[1], np.zeros(16))
        assert np.any(embeddings[0] != 0) and np.any(embeddings[2] != 0)

    def test_sequence_longer_than_maximum(self, model):
        with pytest.raises(ValueError, match="exceeds maximum"):
            model.embed(list(range(13)))

    def test_forward_output_shape(self, model):
        logits = model.forward([1, 2, 3, 4])
        assert logits.shape == (4, 20)
        assert np.all(np.isfinite(logits))

    def test_forward_with_separate_target(self, model):
        logits = model.forward(source_ids=[1, 2, 3, 4, 5], target_ids=[6, 7])
        assert logits.shape == (2, 20)

    def test_encoder_only_prediction(self, small_config):
        config = TransformerConfig(**{**small_config.__dict__, "use_decoder": False})
        model = TransformerModel(config, vocab_size=20)

        logits = model.forward([1, 2, 3])
        expected = model.encode([1, 2, 3]) @ model.output_projection.weights

        np.testing.assert_allclose(logits, expected, rtol=1e-5)

    def test_next_token_probabilities(self, model):
        probabilities = model.next_token_probabilities([1, 2, 3])

        assert probabilities.shape == (20,)
        assert np.all(probabilities >= 0)
        assert np.isclose(np.sum(probabilities), 1.0, atol=1e-5)

    def test_predict_is_argmax(self, model):
        token_ids = [4, 9, 2]

        predicted = model.predict_next_token(token_ids)

        assert predicted == int(np.argmax(model.next_token_probabilities(token_ids)))
        assert 0 <= predicted < 20

    def test_ties_go_to_lowest_index(self, model):
        """A zero output projection gives a uniform distribution."""
        model.set_parameters({"output_projection.weight": np.zeros((16, 20))})

        assert model.predict_next_token([1, 2, 3]) == 0

    def test_empty_sequence_has_no_prediction(self, model):
        assert model.predict_next_token([]) is None

    def test_same_seed_same_model(self, small_config):
        first = TransformerModel(small_config, vocab_size=20)
        second = TransformerModel(small_config, vocab_size=20)

        np.testing.assert_array_equal(first.forward([1, 2, 3]), second.forward([1, 2, 3]))

    def test_injected_generator(self, small_config):
        first = TransformerModel(small_config, 20, rng=np.random.default_rng(99))
        second = TransformerModel(small_config, 20, rng=np.random.default_rng(99))
        seeded_from_config = TransformerModel(small_config, 20)

        np.testing.assert_array_equal(
            first.output_projection.weights, second.output_projection.weights
        )
        assert not np.array_equal(
            first.output_projection.weights, seeded_from_config.output_projection.weights
        )

    def test_get_parameters(self, model):
        params = model.get_parameters()

        assert "token_embedding.weight" in params
        assert "output_projection.weight" in params
        assert "encoder.layer_0_attn_query_weight" in params
        assert "decoder.layer_1_cross_attn_value_weight" in params
        assert model.count_parameters() == sum(p.size for p in params.values())


class TestPrediction:
    def test_build_transformer_sizes_model_from_vocabulary(self):
        tokenizer, model = build_transformer(
            DEMO_CORPUS, TransformerConfig(embedding_dim=8, num_heads=2, seed=1)
        )

        assert tokenizer.vocabulary_size == 14
        assert model.vocab_size == 14
        assert model.output_projection.weights.shape == (8, 14)

    def test_build_transformer_empty_corpus(self):
        with pytest.raises(ValueError, match="no words"):
            build_transformer([" "], TransformerConfig(seed=0))

    def test_predict_next_word_returns_vocabulary_word(self):
        tokenizer, model = build_transformer(
            DEMO_CORPUS, TransformerConfig(embedding_dim=8, num_heads=2, seed=1)
        )

        word = predict_next_word(model, tokenizer, "The quick brown")

        assert word in tokenizer.token_to_id

    def test_predict_next_word_empty_sentence(self):
        tokenizer, model = build_transformer(
            DEMO_CORPUS, TransformerConfig(embedding_dim=8, num_heads=2, seed=1)
        )

        assert predict_next_word(model, tokenizer, "   ") == ""

    def test_unknown_words_are_logged_not_raised(self, caplog):
        tokenizer, model = build_transformer(
            DEMO_CORPUS, TransformerConfig(embedding_dim=8, num_heads=2, seed=1)
        )

        with caplog.at_level(logging.WARNING, logger="transformer_core.model"):
            word = predict_next_word(model, tokenizer, "the zebra")

        assert word in tokenizer.token_to_id
        assert "zebra" in caplog.text
