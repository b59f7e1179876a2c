"""
Stored authorization attributes.

Serializes attribute clauses, persists them per record, and matches them
against user grants.
"""
