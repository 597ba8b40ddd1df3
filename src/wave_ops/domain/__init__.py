"""Row types and derived records shared across the package."""
