# info_compiler/__init__.py
"""
Election info compiler: civic API ingestion plus a polite candidate news crawler.
"""

__version__ = "0.1.0"
