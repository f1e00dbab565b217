"""
Create operation: instance deployment, module installation and metadata.
"""
