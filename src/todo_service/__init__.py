"""
Todo Service package.

A token-protected Todo API built on FastAPI. Use `create_app()` to build an
application instance, or `serve()` to run one under uvicorn.
"""

from .main import create_app, serve

__version__ = "0.1.0"

__all__ = ["create_app", "serve", "__version__"]
