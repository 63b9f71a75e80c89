"""
Next-Word Prediction from the Command Line

Builds a vocabulary from a small corpus, builds a randomly initialized
model sized for it, reads one sentence and prints the predicted next word.
The weights are never trained, so the prediction only shows the forward
pass end to end.

Usage:
    python -m transformer_core [--sentence TEXT] [--corpus FILE] [--seed N]

Example:
    python -m transformer_core --sentence "the quick brown" --seed 42
"""

import argparse
import logging
from typing import List, Optional

from transformer_core.model import (
    DEMO_CORPUS,
    TransformerConfig,
    build_transformer,
    predict_next_word,
)

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure console logging for the command-line run."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def load_corpus(path: Optional[str]) -> List[str]:
    """Read one sentence per non-empty line, or fall back to the demo corpus."""
    if path is None:
        return list(DEMO_CORPUS)

    with open(path, "r", encoding="utf-8") as f:
        sentences = [line.strip() for line in f if line.strip()]
    logger.info("Loaded %d sentences from %s", len(sentences), path)
    return sentences


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Transformer next-word prediction")
    parser.add_argument(
        "--sentence", help="Input sentence (prompted for when omitted)"
    )
    parser.add_argument(
        "--corpus", help="Text file with one vocabulary sentence per line"
    )
    parser.add_argument("--embedding-dim", type=int, default=64)
    parser.add_argument("--num-heads", type=int, default=4)
    parser.add_argument("--ffn-hidden-dim", type=int, default=128)
    parser.add_argument("--num-layers", type=int, default=2)
    parser.add_argument("--max-sequence-length", type=int, default=100)
    parser.add_argument(
        "--encoder-only",
        action="store_true",
        help="Predict from the last encoder position instead of the decoder",
    )
    parser.add_argument("--seed", type=int, default=None, help="Weight init seed")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = TransformerConfig(
            embedding_dim=args.embedding_dim,
            num_heads=args.num_heads,
            ffn_hidden_dim=args.ffn_hidden_dim,
            num_layers=args.num_layers,
            max_sequence_length=args.max_sequence_length,
            use_decoder=not args.encoder_only,
            seed=args.seed,
        )
        tokenizer, model = build_transformer(load_corpus(args.corpus), config)
    except ValueError as e:
        print(f"Error: {e}")
        return 2

    sentence = args.sentence
    if sentence is None:
        try:
            sentence = input('Enter a sentence (e.g., "the quick brown"): ')
        except (EOFError, KeyboardInterrupt):
            print()
            return 1

    try:
        predicted_word = predict_next_word(model, tokenizer, sentence)
    except ValueError as e:
        print(f"Error: {e}")
        return 2

    print(f"Predicted next word: {predicted_word}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
