"""Portfolio collaborators: domain models, repository interface, calculations."""
