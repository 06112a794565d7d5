"""Event filtering, module registry and dispatch for the Matrix bot."""
