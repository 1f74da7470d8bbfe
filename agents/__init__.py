"""The seven MRV stage nodes."""
