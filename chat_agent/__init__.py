"""Chat agent with human-confirmed tool execution."""
