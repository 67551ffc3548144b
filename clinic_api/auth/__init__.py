"""
Authentication module for the clinic booking system.

This module provides authentication and session functionality including:
- Email and password login for doctors and administrators
- One-time code login for patients
- JWT issuance with role-specific lifetimes
- Hashed persistence of every issued token
"""
