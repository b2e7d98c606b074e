"""Provision WSL guests from disk images into registered, package-ready machines."""
