"""Instasite: describe a website, watch it stream in, preview it live."""

__version__ = "0.1.0"
