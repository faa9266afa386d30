"""
toolbridge: protocol-independent tool catalogue, validation and dispatch.
"""

__toolbridge_version__ = "0.1.0"
