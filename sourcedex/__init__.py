"""sourcedex - command-line driver for a source code indexing and search platform."""

__version__ = "0.9.0"
