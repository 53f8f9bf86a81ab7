"""HTTP surface of the Linkstrategy engine."""
