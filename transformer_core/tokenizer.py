"""
Word-Level Tokenizer

This module implements the simplest tokenizer that can drive the model:
sentences are lowercased and split on whitespace, and every distinct word
gets the next free index in order of first appearance.

Unknown words encode to NOT_FOUND instead of raising; the model turns them
into zero vectors. Unknown indices decode to "<unk>".

Classes:
    WordTokenizer: Vocabulary building, encode, decode, save/load
"""

import json
from typing import Dict, Iterable, List

NOT_FOUND = -1


class WordTokenizer:
    """
    Whitespace + lowercase tokenizer with a bijective word <-> index table.

    Attributes:
        token_to_id: Dict mapping words to indices
        vocabulary: Dict mapping indices to words
        vocabulary_size: Number of known words

    Example:
        >>> tokenizer = WordTokenizer()
        >>> tokenizer.build_vocabulary(["the quick brown fox"])
        >>> tokenizer.encode("The")
        0
        >>> tokenizer.decode(999)
        '<unk>'
    """

    UNK_TOKEN = "<unk>"

    def __init__(self):
        """Initialize empty tokenizer."""
        self.token_to_id: Dict[str, int] = {}
        self.vocabulary: Dict[int, str] = {}

    @property
    def vocabulary_size(self) -> int:
        """Return the size of the vocabulary."""
        return len(self.vocabulary)

    @staticmethod
    def tokenize(sentence: str) -> List[str]:
        """Split a sentence on whitespace and lowercase every word."""
        return [word.lower() for word in sentence.split()]

    def build_vocabulary(self, sentences: Iterable[str]) -> None:
        """
        Add every new word of the corpus to the vocabulary.

        Indices are assigned in order of first appearance, so building from
        the same corpus always gives the same table. Calling it again extends
        the existing vocabulary.

        Args:
            sentences: Corpus sentences
        """
        for sentence in sentences:
            for word in self.tokenize(sentence):
                if word not in self.token_to_id:
                    index = len(self.vocabulary)
                    self.token_to_id[word] = index
                    self.vocabulary[index] = word

    def encode(self, word: str) -> int:
        """
        Look up a single word (case-insensitive).

        Returns:
            The word's index, or NOT_FOUND if the word is unknown
        """
        return self.token_to_id.get(word.lower(), NOT_FOUND)

    def encode_sentence(self, sentence: str) -> List[int]:
        """Encode every word of a sentence; unknown words become NOT_FOUND."""
        return [self.encode(word) for word in self.tokenize(sentence)]

    def decode(self, index: int) -> str:
        """Return the word for an index, or "<unk>" for an unknown index."""
        return self.vocabulary.get(index, self.UNK_TOKEN)

    def save(self, path: str) -> None:
        """
        Save the vocabulary to a JSON file.

        Args:
            path: Output file path
        """
        data = {"vocabulary": [self.vocabulary[i] for i in range(self.vocabulary_size)]}
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    @classmethod
    def load(cls, path: str) -> "WordTokenizer":
        """
        Load a vocabulary saved with save().

        Args:
            path: Path to saved tokenizer file

        Returns:
            Loaded WordTokenizer instance
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        tokenizer = cls()
        for index, word in enumerate(data["vocabulary"]):
            if word in tokenizer.token_to_id:
                raise ValueError(f"Duplicate word in saved vocabulary: {word!r}")
            tokenizer.token_to_id[word] = index
            tokenizer.vocabulary[index] = word
        return tokenizer
