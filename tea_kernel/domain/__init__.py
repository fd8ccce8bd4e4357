"""Pure domain layer: clock, DTOs and valuation arithmetic."""
