"""In-memory key-value server and client over the RESP frame protocol, with an echo server and a toy executor."""

__version__ = "0.1.0"
__all__ = ["__version__"]