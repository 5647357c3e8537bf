"""Data services feeding the viewer."""
