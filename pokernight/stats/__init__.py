"""Statistics module: yearly reports over closed sessions."""
