"""Setup tooling for Jarvis Hooks."""
