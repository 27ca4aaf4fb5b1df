"""Archive, share and restore opencode sessions across machines."""
