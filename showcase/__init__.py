"""Prototype showcase: share HTML prototypes through magic links and collect feedback."""

__version__ = "1.4.0"
