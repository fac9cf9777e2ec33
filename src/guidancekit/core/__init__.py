"""Core infrastructure shared by every guidancekit subsystem."""
