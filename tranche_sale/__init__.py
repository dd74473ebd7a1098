"""
Tranche Sale
============
Staged token sale service with a geometric price ladder.
"""

__version__ = "1.0.0"
