"""Session modes. Exploration is implemented; combat is a reserved name."""
