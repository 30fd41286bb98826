"""
Basecore - shared infrastructure (settings, logging, database, Redis).
"""
