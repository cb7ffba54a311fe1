"""Accounts: users, organizations, team membership, invitations and notifications."""
