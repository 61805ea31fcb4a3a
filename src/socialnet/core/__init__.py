"""Core configuration, security helpers and shared primitives."""
