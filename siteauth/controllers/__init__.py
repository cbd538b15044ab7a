"""Request controllers. Each returns response data, status and headers."""
