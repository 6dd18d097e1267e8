"""
Output module - DevSet and topology output formatters

Contains formatters for different output formats:
- JSON
- Text (human-readable)
- ASCII art (ring and tree diagrams)
"""

from .formatters import to_dict, to_json, to_text, to_ascii, format_issues

__all__ = ['to_dict', 'to_json', 'to_text', 'to_ascii', 'format_issues']
