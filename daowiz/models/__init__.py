"""
Data models module.

Immutable data structures for deployment plans, scan queries, templates,
metadata descriptors and discovered instances. Frozen dataclasses throughout.
"""
