"""Device and global command operations used by the command router."""
