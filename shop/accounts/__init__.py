"""User accounts, password hashing and bearer tokens."""
