"""Import, spec and code analysis."""
