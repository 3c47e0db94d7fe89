"""Row adapters, one per statement column layout."""
