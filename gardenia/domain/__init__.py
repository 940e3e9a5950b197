"""Bundle models, declaration parsing and errors."""
