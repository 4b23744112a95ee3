"""Revenue projection engine: historical base, hierarchical assumptions, projections."""
