"""An HTTP server configured by an nginx-like configuration file."""

__version__ = "0.1.0"