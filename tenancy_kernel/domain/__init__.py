"""Pure domain layer of the tenancy kernel: clock, calendar, workflow types."""
