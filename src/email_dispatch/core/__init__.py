"""Command pipeline, handler, configuration and worker supervision."""
