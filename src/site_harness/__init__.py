"""Build, serve and check the static site."""

__version__ = "0.1.0"
