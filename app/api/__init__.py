"""HTTP API: settings, logging, security and routes."""
