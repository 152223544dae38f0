"""Shared utilities for devdash."""
