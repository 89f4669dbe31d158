"""API routers for Teamflow Core."""

from . import admin, permissions, tree, workspaces

__all__ = ["admin", "permissions", "tree", "workspaces"]
