"""
Persistence subsystem.

Components:
- store.py: SQLite-backed accounts, sessions, tasks and subtasks
- passwords.py: bcrypt hashing helpers used by registration/login
"""
