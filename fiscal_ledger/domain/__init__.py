"""Pure domain layer: calendar conversion, double-entry rules, DTOs."""
