"""RMS Desktop – launcher for the local RMS server sidecar."""
