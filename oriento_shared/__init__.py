"""
Shared definitions for the Oriento session client.

This package contains the data models, collaborator interfaces, exception
hierarchy and logging configuration used across the client.
"""
