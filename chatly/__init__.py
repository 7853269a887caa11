"""Chatly - multi-tenant customer support chat widget backend."""

__version__ = "0.1.0"
