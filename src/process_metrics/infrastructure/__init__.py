"""Infrastructure: adapters that implement the application ports."""
