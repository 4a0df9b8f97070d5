"""Domain layer - pure values, workflow definition, policy and DTOs."""
