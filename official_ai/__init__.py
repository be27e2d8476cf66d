"""
Top-level package for the Official AI tools directory.

This package serves a bilingual (Chinese / English) catalog of official
AI tool links: locale resolution from cookies, headers and browser
storage, dotted-key UI label lookup, and a lazily loaded fuzzy search
index over the tool names and descriptions.  Importing the package has
no side effects; the locale tables are read when ``official_ai.i18n``
is first imported.
"""

__version__ = "0.1.0"
