"""Data models for the NexusNotes data layer."""
