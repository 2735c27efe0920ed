"""Networked dots-and-boxes: authoritative game engine and sync protocol."""

__version__ = "0.1.0"
