"""Meeting domain logic: status derivation, URL extraction, refresh and alerting."""
