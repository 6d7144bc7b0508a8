"""Fixed-interval process I/O and scheduling sampler."""
