"""Record processing pipeline: mapping, filtering, PII tokenization and export."""
