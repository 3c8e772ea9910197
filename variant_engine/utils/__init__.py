"""
Shared helpers: correlation IDs and identifier parsing
"""
