"""
Keeps every Vault instance behind a Kubernetes service unsealed.
"""

__version__ = "0.1.0"
