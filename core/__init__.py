"""core/ -- Kernel: configuration and the database handle. Imports nothing from auth/."""
