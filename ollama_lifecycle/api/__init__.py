"""Status API for the model lifecycle sidecar."""
