"""Engine services — renderers, matchers, installer, service control, diagnostics."""
