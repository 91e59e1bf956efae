"""
Oriento session client.

This package provides the authenticated HTTP client, its configuration and
the command-line entry point.
"""
