"""HTTP blueprints, one module per API area."""
