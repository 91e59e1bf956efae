"""
Authentication package for the Oriento session client.

This package contains the session store, request authentication, coordinated
credential renewal and the access guard used by the navigation layer.
"""
