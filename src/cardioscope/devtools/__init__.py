"""Developer tools for running Cardioscope locally."""
