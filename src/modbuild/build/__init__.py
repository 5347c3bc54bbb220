"""Module dependency scanning, graph building and ordering."""
