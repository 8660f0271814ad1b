"""HTTP and WebSocket surface over the pipeline orchestrator."""
