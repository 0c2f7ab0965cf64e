"""Idea Board backend: kanban boards with a bulk task import engine."""
