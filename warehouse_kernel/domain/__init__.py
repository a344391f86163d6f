"""Pure domain layer: actors, clock, DTOs, and the custody state machine."""
