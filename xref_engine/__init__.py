"""Field validation and cross-reference engine for mortgage document intake."""
