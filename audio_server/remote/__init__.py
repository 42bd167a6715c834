"""Client side of the trigger protocol."""
