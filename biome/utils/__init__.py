"""Shared helpers — configuration and log rendering."""
