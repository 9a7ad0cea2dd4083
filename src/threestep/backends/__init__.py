"""Backends for threestep input generation (Mplus)."""

from .mplus_generator import RenderedSpec, format_constant, generate_input, save_input_file

__all__ = ["RenderedSpec", "format_constant", "generate_input", "save_input_file"]
