"""
Lookup package: reference tables read through the cache.
"""
