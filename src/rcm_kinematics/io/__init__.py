"""I/O utilities for loading mechanism parameter records.

This module provides functions for parsing parameter files and converting
them to immutable MechanismParameters records.
"""

from .parameter_parser import load_parameters, parse_parameters

__all__ = ["load_parameters", "parse_parameters"]
