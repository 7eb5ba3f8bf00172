"""Provision and tear down OCI instances, database systems and block volumes for test runs"""

__version__ = "1.0.0"
