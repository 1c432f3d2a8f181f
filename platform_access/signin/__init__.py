"""Step-up MFA sign-in gate."""
