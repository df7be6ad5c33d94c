"""Command line interface for acmestore."""
