"""
Utility functions module.

Shared helpers used across the deployment and discovery components.
"""
