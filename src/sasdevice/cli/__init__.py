"""Command line interface for the sas-device agent."""

from .main import app, main

__all__ = ["app", "main"]
