"""Credential issuance, verification and email-code password reset."""
