"""Built-in extensions shipped with tfcases."""
