"""Built-in plugin implementations."""
