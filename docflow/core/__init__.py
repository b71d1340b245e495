"""Core configuration, logging, access control and the approval workflow."""
