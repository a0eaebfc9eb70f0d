"""
Translation bundle caching and loading.
"""
