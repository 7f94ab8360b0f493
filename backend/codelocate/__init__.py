"""codelocate: semantic code index for locating functions by meaning."""

__version__ = "0.1.0"
