"""Remote training/inference pod lifecycle."""
