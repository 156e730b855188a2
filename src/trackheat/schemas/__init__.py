"""JSON schemas bundled with trackheat."""
