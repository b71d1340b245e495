"""Services backing the workflow's collaborators."""
