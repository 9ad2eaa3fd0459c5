"""Conference booking, pricing and payment service."""

__version__ = "1.0.0"
