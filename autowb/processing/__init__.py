"""
Processing modules for autowb

Colorimetric white balance math and the two-pass pipeline that drives it.
"""
