"""DocFlow: document requests and multi-stage approvals for university staff and students."""

__version__ = "0.1.0"
