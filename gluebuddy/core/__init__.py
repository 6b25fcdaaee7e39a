"""Core gathering logic: Keycloak access and the user registry."""
