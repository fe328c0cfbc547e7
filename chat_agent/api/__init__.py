"""HTTP API for the chat agent."""
