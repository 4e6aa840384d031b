"""Reconcile Todoist watch-list tasks with Filmweb VOD metadata."""

__version__ = "0.1.0"
