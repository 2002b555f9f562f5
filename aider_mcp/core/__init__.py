"""
Aider MCP core: configuration, shared types and exceptions.
"""
