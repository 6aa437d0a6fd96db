"""
Utility modules for autowb.
"""
