"""Catalog admin service.

Manages products, categories and subcategories stored in a document
store, with product images hosted on an external media service.
"""

__version__ = "0.1.0"
