"""Command line interface for the dispatch service."""
