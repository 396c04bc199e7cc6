"""Dashboard-facing data shaping and exports."""
