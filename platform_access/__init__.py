"""Platform Access API: tenant isolation and platform administrator access control."""
