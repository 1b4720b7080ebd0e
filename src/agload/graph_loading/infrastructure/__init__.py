"""Infrastructure adapters for the graph loading bounded context."""
