"""
Encoder-Decoder Transformer Model

This module assembles all components into a complete forward-only model.

Architecture Overview:
    Source words                      Target words
         |                                 |
    [Word Embedding] + [Positional Encoding] (shared tables)
         |                                 |
    [Encoder Layer] x N                    |
         |                                 |
    encoder output ------------> [Decoder Layer] x N
                                           |
                          last position -> [Output Projection] -> logits
                                           |
                                       [Softmax] -> next-token probabilities

For next-word prediction the prompt is fed as both the source and the
target sequence, so the last decoder row sees the whole prompt through the
causal self-attention and the whole encoder output through cross-attention.
With use_decoder=False the last encoder row is projected directly.

There is no training: every weight is drawn once from the injected
generator when the model is built.

Classes:
    TransformerConfig: Configuration dataclass for model hyperparameters
    TransformerModel: Complete encoder-decoder model

Functions:
    build_transformer: Build the vocabulary, then a model sized for it
    predict_next_word: Sentence in, predicted next word out
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from transformer_core.activations import softmax
from transformer_core.layers import Embedding, Linear, PositionalEncoding
from transformer_core.numeric import DTYPE, create_rng
from transformer_core.tokenizer import NOT_FOUND, WordTokenizer
from transformer_core.transformer import Decoder, Encoder

logger = logging.getLogger(__name__)

DEMO_CORPUS = [
    "the quick brown fox jumps over the lazy dog",
    "the dog barks loudly",
    "fox is a clever animal",
]


@dataclass
class TransformerConfig:
    """
    Configuration for the Transformer model.

    Attributes:
        embedding_dim: Dimension of token embeddings (d_model in papers)
        num_heads: Number of attention heads, must divide embedding_dim
        ffn_hidden_dim: Hidden dimension of the feed-forward networks
        num_layers: Number of encoder layers, and of decoder layers
        max_sequence_length: Number of precomputed positional encodings
        use_decoder: Predict from the decoder output (True) or directly
                     from the encoder output (False)
        seed: Seed for weight initialization, None for a fresh draw
    """

    embedding_dim: int = 64
    num_heads: int = 4
    ffn_hidden_dim: int = 128
    num_layers: int = 2
    max_sequence_length: int = 100
    use_decoder: bool = True
    seed: Optional[int] = None

    def __post_init__(self):
        for name in ("embedding_dim", "num_heads", "ffn_hidden_dim", "max_sequence_length"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.num_layers < 0:
            raise ValueError(f"num_layers must be non-negative, got {self.num_layers}")
        if self.embedding_dim % self.num_heads != 0:
            raise ValueError(
                f"Embedding dimension ({self.embedding_dim}) must be divisible by "
                f"number of heads ({self.num_heads})"
            )


class TransformerModel:
    """
    Complete encoder-decoder Transformer for next-token prediction.

    The vocabulary size is a constructor argument, so every weight matrix has
    its final shape from the start.

    Example usage:
        tokenizer = WordTokenizer()
        tokenizer.build_vocabulary(corpus)
        model = TransformerModel(TransformerConfig(seed=0), tokenizer.vocabulary_size)
        token_id = model.predict_next_token(tokenizer.encode_sentence("the quick"))

    Attributes:
        config: Model configuration
        vocab_size: Number of tokens the output projection scores
        token_embedding: Token ID -> vector embedding
        positional_encoding: Position -> encoding vector
        encoder: Stack of encoder layers
        decoder: Stack of decoder layers
        output_projection: (embedding_dim x vocab_size) projection, no bias
    """

    def __init__(
        self,
        config: TransformerConfig,
        vocab_size: int,
        rng: Optional[np.random.Generator] = None,
    ):
        """
        Initialize the model.

        Args:
            config: TransformerConfig with model hyperparameters
            vocab_size: Vocabulary size from the tokenizer
            rng: Generator for weight initialization; defaults to one seeded
                 from config.seed
        """
        if vocab_size <= 0:
            raise ValueError(f"Vocabulary size must be positive, got {vocab_size}")

        self.config = config
        self.vocab_size = vocab_size
        rng = rng if rng is not None else create_rng(config.seed)

        self.token_embedding = Embedding(vocab_size, config.embedding_dim, rng)
        self.positional_encoding = PositionalEncoding(
            max_sequence_length=config.max_sequence_length,
            embedding_dimension=config.embedding_dim,
        )

        self.encoder = Encoder(
            num_layers=config.num_layers,
            embedding_dimension=config.embedding_dim,
            num_heads=config.num_heads,
            ffn_hidden_dimension=config.ffn_hidden_dim,
            rng=rng,
        )
        self.decoder = Decoder(
            num_layers=config.num_layers,
            embedding_dimension=config.embedding_dim,
            num_heads=config.num_heads,
            ffn_hidden_dimension=config.ffn_hidden_dim,
            rng=rng,
        )

        self.output_projection = Linear(
            config.embedding_dim, vocab_size, rng, use_bias=False
        )

        logger.debug(
            "Built transformer: vocab=%d, d_model=%d, heads=%d, layers=%d, params=%d",
            vocab_size,
            config.embedding_dim,
            config.num_heads,
            config.num_layers,
            self.count_parameters(),
        )

    def embed(self, token_ids: Sequence[int]) -> np.ndarray:
        """
        Build the input matrix for a token sequence.

        Row i is word_embedding[token_ids[i]] + positional_encoding[i]. An
        unknown token (NOT_FOUND) gets an all-zero row.

        Args:
            token_ids: Token indices, at most max_sequence_length of them

        Returns:
            Matrix of shape (len(token_ids), embedding_dim)
        """
        token_ids = np.asarray(token_ids, dtype=np.int64).reshape(-1)
        sequence_length = token_ids.shape[0]

        position_encodings = self.positional_encoding.get_encoding(sequence_length)
        embeddings = np.zeros((sequence_length, self.config.embedding_dim), dtype=DTYPE)

        known = token_ids != NOT_FOUND
        if not np.all(known):
            logger.debug(
                "Unknown token at position(s) %s, using zero vectors",
                np.flatnonzero(~known).tolist(),
            )

        embeddings[known] = (
            self.token_embedding.forward(token_ids[known]) + position_encodings[known]
        )
        return embeddings

    def encode(self, token_ids: Sequence[int]) -> np.ndarray:
        """Run the source tokens through the encoder stack."""
        return self.encoder.forward(self.embed(token_ids))

    def decode(
        self, target_ids: Sequence[int], encoder_output: np.ndarray
    ) -> np.ndarray:
        """Run the target tokens through the decoder stack."""
        return self.decoder.forward(self.embed(target_ids), encoder_output)

    def forward(
        self,
        source_ids: Sequence[int],
        target_ids: Optional[Sequence[int]] = None,
    ) -> np.ndarray:
        """
        Compute vocabulary logits for every output position.

        Args:
            source_ids: Encoder input token IDs
            target_ids: Decoder input token IDs (defaults to source_ids)

        Returns:
            Logits of shape (target_len, vocab_size), or (source_len, vocab_size)
            when the decoder is disabled
        """
        encoder_output = self.encode(source_ids)

        if self.config.use_decoder:
            if target_ids is None:
                target_ids = source_ids
            hidden_states = self.decode(target_ids, encoder_output)
        else:
            hidden_states = encoder_output

        return self.output_projection.forward(hidden_states)

    def next_token_probabilities(self, token_ids: Sequence[int]) -> np.ndarray:
        """
        Probability distribution over the vocabulary for the next token.

        Args:
            token_ids: Non-empty prompt token IDs

        Returns:
            Vector of shape (vocab_size,) summing to 1
        """
        if len(token_ids) == 0:
            raise ValueError("Cannot compute next-token probabilities for an empty sequence")

        logits = self.forward(token_ids)
        return softmax(logits[-1])

    def predict_next_token(self, token_ids: Sequence[int]) -> Optional[int]:
        """
        Most likely next token for a prompt.

        Ties go to the lowest index. An empty prompt has no prediction.

        Returns:
            Token index, or None for an empty sequence
        """
        if len(token_ids) == 0:
            return None

        probabilities = self.next_token_probabilities(token_ids)
        return int(np.argmax(probabilities))

    def get_parameters(self) -> Dict[str, np.ndarray]:
        """
        Get all model parameters as a flat dictionary.

        Returns:
            Dictionary mapping parameter names to arrays
        """
        params = {
            "token_embedding.weight": self.token_embedding.embedding_table,
            "output_projection.weight": self.output_projection.weights,
        }
        params.update(
            {f"encoder.{k}": v for k, v in self.encoder.get_parameters().items()}
        )
        params.update(
            {f"decoder.{k}": v for k, v in self.decoder.get_parameters().items()}
        )
        return params

    def set_parameters(self, params: Dict[str, np.ndarray]) -> None:
        """
        Replace parameters by name; shapes must match the existing ones.

        Args:
            params: Dictionary mapping parameter names to arrays
        """
        if "token_embedding.weight" in params:
            self.token_embedding.set_parameters(
                {"embedding_table": params["token_embedding.weight"]}
            )
        if "output_projection.weight" in params:
            self.output_projection.set_parameters(
                {"weight": params["output_projection.weight"]}
            )
        self.encoder.set_parameters(
            {k[len("encoder.") :]: v for k, v in params.items() if k.startswith("encoder.")}
        )
        self.decoder.set_parameters(
            {k[len("decoder.") :]: v for k, v in params.items() if k.startswith("decoder.")}
        )

    def count_parameters(self) -> int:
        """Count total number of parameters."""
        return sum(p.size for p in self.get_parameters().values())


def build_transformer(
    corpus: Sequence[str],
    config: Optional[TransformerConfig] = None,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[WordTokenizer, TransformerModel]:
    """
    Build the vocabulary from a corpus, then a model sized for it.

    Args:
        corpus: Sentences used to build the vocabulary
        config: Model hyperparameters (defaults to TransformerConfig())
        rng: Optional generator for weight initialization

    Returns:
        (tokenizer, model)
    """
    config = config or TransformerConfig()

    tokenizer = WordTokenizer()
    tokenizer.build_vocabulary(corpus)
    if tokenizer.vocabulary_size == 0:
        raise ValueError("Corpus contains no words; cannot size the vocabulary")

    logger.info("Vocabulary built with %d words", tokenizer.vocabulary_size)

    model = TransformerModel(config, tokenizer.vocabulary_size, rng=rng)
    return tokenizer, model


def predict_next_word(
    model: TransformerModel, tokenizer: WordTokenizer, sentence: str
) -> str:
    """
    Predict the word following a sentence.

    Args:
        model: Model built for the tokenizer's vocabulary
        tokenizer: Tokenizer used to encode the sentence and decode the result
        sentence: Input text

    Returns:
        The predicted word, or "" for an empty sentence
    """
    token_ids: List[int] = tokenizer.encode_sentence(sentence)
    for word, token_id in zip(tokenizer.tokenize(sentence), token_ids):
        if token_id == NOT_FOUND:
            logger.warning('Unknown token "%s"', word)

    predicted = model.predict_next_token(token_ids)
    if predicted is None:
        return ""
    return tokenizer.decode(predicted)
