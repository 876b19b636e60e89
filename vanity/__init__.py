"""Serve go-get vanity import paths as an ASGI application."""

__version__ = "0.1.0"
