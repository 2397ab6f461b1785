"""Chancery: turns free-form player intent into validated decision bundles."""

__version__ = "0.1.0"
