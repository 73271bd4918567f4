"""Frontends - terminal UI and CLI."""
