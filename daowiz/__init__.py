"""
daowiz - Beacon DAO provisioning and discovery

Deploys new instances of the Beacon DAO contract, installs their execution
modules in order, publishes their metadata to a content-addressed store, and
scans chain history for previously deployed instances.
"""

__version__ = "0.1.0"
__author__ = "daowiz Team"
