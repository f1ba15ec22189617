"""Core domain, ports, services and use cases."""
