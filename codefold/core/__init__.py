"""Core of codefold: the lossless Java tree, folding, and project I/O."""
