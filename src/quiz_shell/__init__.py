"""Quiz shell: an interactive question/answer quiz console and server."""
