"""Route modules for the Little Wonder API."""
