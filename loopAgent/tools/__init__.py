"""Tools that talk to the control layer."""
