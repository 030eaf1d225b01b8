"""
REST API module for the prototype showcase.

Provides FastAPI endpoints for:
- Authentication and user administration
- Prototype upload/management and magic links
- Public magic-link viewing, prospect and viewer portals
"""
