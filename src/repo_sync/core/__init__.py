"""Core plumbing: logging, exceptions and process lifecycle."""
