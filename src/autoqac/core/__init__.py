"""Process supervision, log classification and run orchestration."""
