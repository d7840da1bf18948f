"""Pure domain layer: DTOs, validation, reconciliation arithmetic, clock."""
