"""Regular-expression state-machine lexers, token types, registries and token remapping."""

__version__ = "0.1.0"
__all__ = ["__version__"]