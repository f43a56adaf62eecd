"""
Task list files.

- task_file.py: JSON serialization for /export and document import
"""
