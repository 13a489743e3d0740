"""Shared helpers for the worldtube package."""
