"""ProspectComps services."""
