"""Magic links: access checks and admin management."""
