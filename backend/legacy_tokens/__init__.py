"""Legacy tokens: staged, height-gated ownership transfer for non-fungible tokens."""

__version__ = "0.1.0"
