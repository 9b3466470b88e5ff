"""Infrastructure layer: upstream sources, caching and external metrics."""
