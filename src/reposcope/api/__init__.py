"""RepoScope HTTP API."""
