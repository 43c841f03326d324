"""Library circulation service: checkout, return, holds and lost/found for catalog assets."""

__version__ = "0.1.0"
