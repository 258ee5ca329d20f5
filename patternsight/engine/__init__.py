"""Analysis pipeline: ranking, overlays and the end-to-end engine."""
