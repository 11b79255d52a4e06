"""Campus Events application package."""
