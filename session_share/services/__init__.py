"""Service layer for session archive, restore and share operations."""
