"""Application layer: ports the workflow engine depends on."""
