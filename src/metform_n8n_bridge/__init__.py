"""Forward MetForm submissions to an n8n webhook."""

__version__ = "2.0"
