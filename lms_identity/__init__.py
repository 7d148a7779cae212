"""Canonical user identity resolution for the learning platform."""

__version__ = "0.1.0"
