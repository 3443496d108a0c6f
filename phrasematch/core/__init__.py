"""Core components for phrasematch."""
