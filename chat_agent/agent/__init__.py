"""AI agent module for tool-based LLM conversations.

Tools are either auto-executing or confirmation-required. Confirmation-required
calls stay pending in the transcript until the user records a decision, and are
resolved by the reconciler at the start of the next turn.
"""
