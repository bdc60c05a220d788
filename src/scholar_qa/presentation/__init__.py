"""Presentation layer: HTTP surface."""
