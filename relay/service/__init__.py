"""Use-cases and the upstream gateway; HTTP-free so the smoke runner can reuse them."""
