"""Expression trees, rewriting, reduction and lowering."""
