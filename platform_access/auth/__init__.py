"""Identity token verification and platform administrator authorization."""
