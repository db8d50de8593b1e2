"""Core task orchestration and git workspace lifecycle."""
