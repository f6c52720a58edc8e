"""Shared domain package for the installation portal.

This package holds the code that does not depend on Flask:

- Database models (models.py) - SQLAlchemy declarative models and timezone helpers
- Enums (enums.py) - Status values, principal kinds and storage error kinds
- Validation utilities (validation.py, schemas.py) - Input validation, sanitization
  and the pydantic view models the portal routes serialize
"""
