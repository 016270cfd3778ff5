"""ProspectComps core: configuration, logging, storage and models."""
