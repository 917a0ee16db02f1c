"""Infrastructure: database wiring, locks, units of work and repositories."""
