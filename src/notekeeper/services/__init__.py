"""Service layer for the notekeeper storage core."""
