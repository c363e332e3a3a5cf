"""Static analyses run while rewriting: purity and threadability."""
