"""Service layer for teamspace: membership, invitations, projects and notifications."""
