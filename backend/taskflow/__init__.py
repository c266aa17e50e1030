"""Taskflow kanban backend package."""
