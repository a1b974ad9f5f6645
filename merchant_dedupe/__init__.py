"""Merchant duplicate resolution: candidate listing and atomic merges."""

__version__ = "0.1.0"
