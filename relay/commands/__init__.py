"""Command objects: one class per pipeline operation."""
