"""
TaskFlow: personal task management backed by an external record store.

The FastAPI application lives in taskflow.main (taskflow.main:app for ASGI
servers, taskflow.main.create_app() for a custom configuration). It is not
imported here so that importing the package has no side effects.
"""

__version__ = "0.1.0"
