"""memoshare command-line interface."""
