"""HTTP routers for the Passt Nicht server."""
