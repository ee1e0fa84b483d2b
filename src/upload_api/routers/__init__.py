"""HTTP routes of the Upload API."""
