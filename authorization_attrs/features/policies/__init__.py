"""
Host-defined authorization policies and the grants they return.
"""
