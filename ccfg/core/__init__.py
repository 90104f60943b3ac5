"""Detection, plugin registry, selection and settings store.

Submodules are imported directly (ccfg.core.detect.detector,
ccfg.core.plugin.registry, ...); ccfg.config depends on ccfg.core.logging, so
this package stays free of eager imports.
"""
