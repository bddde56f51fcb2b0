"""Arc Raiders countdown bot."""

VERSION = "2025-10-01"
