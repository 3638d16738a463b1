# fastfiles/__init__.py
"""fastfiles: fast directory-tree file enumerator for fuzzy-finder front-ends."""

__version__ = "0.4.0"
