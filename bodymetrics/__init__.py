"""Body-composition measurement ingestion and AI health analysis service."""
