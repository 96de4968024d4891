"""API module for storyloom.

Thin HTTP adapter:
- Validates inputs against the wire contract
- Maps the error taxonomy to status codes
- Forbidden: prompt assembly, retry or validation logic
"""
