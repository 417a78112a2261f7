"""Application layer: delivery orchestration and use cases."""
