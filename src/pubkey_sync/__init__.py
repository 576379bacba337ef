"""Keep a contract public key in sync and submit encrypted data to it."""
