"""Project request lifecycle and payment-state backend."""
