"""
pgbeam - PostgreSQL COPY over HTTP

Streams a filtered table out of PostgreSQL as a COPY byte stream over HTTP,
and loads a COPY byte stream (fetched from another pgbeam server or posted
directly) back into a table.
"""

__version__ = "0.1.0"
__author__ = "pgbeam Team"

__all__ = ["__version__", "__author__"]
