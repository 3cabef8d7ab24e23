"""MCP server exposing the NexusNotes operations."""
