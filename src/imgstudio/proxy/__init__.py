"""
Book-search proxy: forwards search requests upstream with a server-held key.
"""

from imgstudio.proxy.books import router, search_books

__all__ = ["router", "search_books"]
