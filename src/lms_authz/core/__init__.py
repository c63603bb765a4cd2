"""Core primitives shared by feature packages."""
