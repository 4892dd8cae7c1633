"""Test fixture package for lockgate.

Contains fixtures for:
- Collaborator doubles for the content store and ledger
- SQLite backed lock record store
- In-process API client
"""
