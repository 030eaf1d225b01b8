"""Domain services for the prototype showcase.

Import from the subpackages directly, e.g.
``from showcase.core.db.models import Base``.
"""
