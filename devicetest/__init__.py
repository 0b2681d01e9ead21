"""Device test case model and execution reporting engine."""
