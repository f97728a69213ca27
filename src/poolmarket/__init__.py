"""poolmarket - pooled prediction market pricing and settlement."""

__version__ = "0.1.0"
