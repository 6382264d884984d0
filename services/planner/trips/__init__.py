"""
Trip management: records, validation, classification, the in-memory store,
and the CRUD service on top of it.
"""
