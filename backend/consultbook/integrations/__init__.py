"""External collaborators: meeting provider, payment gateway, contracts."""
