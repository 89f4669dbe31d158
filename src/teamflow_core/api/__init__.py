"""HTTP API for Teamflow Core."""
