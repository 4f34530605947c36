"""Wire models and enumerations of the provider."""
