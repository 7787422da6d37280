"""CodeWeave core: types, configuration, exceptions and diagnostics."""
