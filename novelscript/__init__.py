"""Compiler and pygame player for a small visual novel scripting language."""

__version__ = "0.1.0"