"""Request controllers."""
