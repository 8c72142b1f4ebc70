"""BookVerse: REST backend for a bookstore catalogue."""
