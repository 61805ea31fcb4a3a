"""Service layer for the social network backend."""
