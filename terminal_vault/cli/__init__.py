"""Click command-line front end."""
