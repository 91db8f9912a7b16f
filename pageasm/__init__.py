"""Resolution, page checking, encoding and diagnostics for a paged 16-bit assembler."""

__version__ = "0.1.0"