"""
MTS Django storage adapter.
ORM persistence behind the engine storage protocols.
"""
