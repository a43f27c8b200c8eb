"""Runtime helpers: metrics facade, transport resolution and server wiring."""
