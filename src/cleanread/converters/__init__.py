"""Converters from sanitized markup to output formats."""

from cleanread.converters.markdown_converter import DocumentConverter, detect_language

__all__ = ["DocumentConverter", "detect_language"]
