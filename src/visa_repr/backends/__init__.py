"""Backends for resolved-map output (shell, batch, YAML table, JSON)."""

from .exports import ExportFormat, parse_format, read_exports, render

__all__ = ["ExportFormat", "parse_format", "read_exports", "render"]
