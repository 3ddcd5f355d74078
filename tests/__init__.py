"""campaign-pull test suite."""
