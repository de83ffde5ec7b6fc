"""
Feed Digest - scheduled feed and page watcher with grouped email digests.

This package polls RSS/Atom feeds and scraped HTML pages, filters out items
that were already delivered, and sends one digest per source group.
"""

__version__ = "0.1.0"
