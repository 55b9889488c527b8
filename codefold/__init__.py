"""codefold: folds MapStruct mapper contracts into their generated implementations."""

__version__ = "0.1.0"
