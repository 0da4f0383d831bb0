"""
Catalog Explorer service.
"""
