"""Tests for the vector search engine.

Unit tests run against in-memory query clients (see ``conftest.py``); no
database is required.
"""
