"""Product catalog administration."""
