"""HTTP and WebSocket server for linkbridge."""
