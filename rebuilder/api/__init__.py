"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from rebuilder.api import app

    uvicorn rebuilder.api:app
"""

from rebuilder.api.app import app, create_app

__all__ = ["app", "create_app"]
