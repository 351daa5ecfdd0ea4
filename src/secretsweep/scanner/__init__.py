"""File classification, chunked streaming, and parallel secret scanning."""
