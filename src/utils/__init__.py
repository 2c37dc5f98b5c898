"""Utilities package for Larder: constants, configuration and datetime helpers."""
