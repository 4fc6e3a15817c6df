"""Infrastructure concerns: configuration, logging and metrics."""
