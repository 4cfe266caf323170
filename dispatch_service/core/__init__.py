"""Core configuration, exceptions and database primitives."""
