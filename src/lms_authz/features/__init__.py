"""Feature packages for the authorization core."""
