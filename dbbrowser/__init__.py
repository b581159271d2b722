"""Generic MySQL table browser: schema introspection and dynamic queries."""

__version__ = "0.1.0"
