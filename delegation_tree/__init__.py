"""Delegation tree - read-only queries over a bounded delegation hierarchy"""

__version__ = "0.1.0"
