"""
Kindergarten Debt Manager - Source Package

A small record-keeping tool for a kindergarten office: families, their
outstanding debt, free-text comments and outbound WhatsApp/email
notifications.

DESIGN PRINCIPLES:
1. One owner for all state (the repository)
2. Derived views are pure functions of the records
3. Nothing is delivered without an explicit user action
4. Every mutation is audited
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Kindergarten Debt Manager Team"
