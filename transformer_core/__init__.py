"""
Forward-Pass Transformer from Scratch

This package implements the forward computation of an encoder-decoder
Transformer using only NumPy: tokenization, embeddings with sinusoidal
positional encoding, multi-head self-, masked- and cross-attention,
feed-forward sublayers, residual connections and layer normalization,
ending in a softmax next-token prediction. Weights are randomly initialized
once from an injected generator and never trained.

Modules:
    numeric: Vector/matrix helpers, layer norm, random initialization
    activations: Activation functions (softmax, ReLU)
    layers: Linear, LayerNorm, Embedding, PositionalEncoding
    attention: Scaled dot-product and multi-head attention
    transformer: Feed-forward, encoder/decoder layers and stacks
    tokenizer: Whitespace word tokenizer
    model: Complete model, builder and next-word prediction
    cli: Command-line next-word predictor

Reference:
    "Attention Is All You Need" (Vaswani et al., 2017)
    https://arxiv.org/abs/1706.03762
"""

__version__ = "1.0.0"
