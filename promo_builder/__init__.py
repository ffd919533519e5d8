"""Promotion rule graph model and compiler for the storefront admin console."""

__version__ = "0.1.0"
