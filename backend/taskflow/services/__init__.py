"""Service-layer modules for task, board, notification, and user operations."""
