"""
Authorization checks and permission-scoped search.
"""
