"""Casaora booking lifecycle and payment-hold engine."""

__version__ = "0.1.0"
