"""
Invocation input module.

Validation of deployment plans from raw file lists and loading of the
built contract artifact that defines the factory template.
"""
