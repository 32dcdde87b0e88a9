"""Domain layer: follow-list reconciliation and identifier resolution."""
