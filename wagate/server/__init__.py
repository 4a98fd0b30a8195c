"""Flask HTTP surface and the event-loop runtime behind it."""
