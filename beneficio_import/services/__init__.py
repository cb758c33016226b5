"""Import pipeline, repair jobs and collection queries."""
