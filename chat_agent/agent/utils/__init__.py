"""Shared utilities for the agent module."""
