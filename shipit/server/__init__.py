"""HTTP server, Slack adapter and worker pool."""
