"""
Command line interface for autowb.
"""

from .main import main

__all__ = ['main']
