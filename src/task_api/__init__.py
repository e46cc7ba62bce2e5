"""
Task Tracker API package.

Build the ASGI application with `task_api.main.create_app()`, or run the
server with `python -m task_api`.
"""

__version__ = "0.1.0"
