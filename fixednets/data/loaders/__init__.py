"""Built-in dataset loaders; importing registers them."""

from . import blobs, xor  # noqa: F401

__all__ = ["blobs", "xor"]
