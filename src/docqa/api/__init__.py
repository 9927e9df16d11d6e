"""HTTP API for document upload and question answering."""
