"""Salina ERP reporting service"""

__version__ = "1.0.0"
