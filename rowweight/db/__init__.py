"""
Database access for weighted models: engine setup, the record store and
the query helpers that scope reads to one ordering group.
"""
