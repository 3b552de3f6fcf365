"""Offboarding-specific role dependencies."""

from ..core.dependencies import require_roles

# HR may open and read terminations; IT staff work them through to archive.
require_termination_viewer = require_roles("Admin", "I.T.", "HR")
require_admin_or_it = require_roles("Admin", "I.T.")
