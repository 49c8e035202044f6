"""
asgi.py -- ASGI entry point for Deltask.

api/main.py builds the application; this module only exposes it under the
conventional name so servers do not need to know the package layout.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import app

__all__ = ["app"]
