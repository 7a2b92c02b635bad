"""Audit action constants.

Learn: Centralizing action names as constants prevents typos and makes
it easy to discover everything the audit log can contain.
"""

# ─── Authentication ──────────────────────────────────────

USER_REGISTERED = "user.registered"
USER_LOGIN = "user.login"
USER_LOGOUT = "user.logout"
USER_LOGOUT_ALL = "user.logout_all"
EMAIL_VERIFIED = "user.email_verified"
MAGIC_LINK_REPLAYED = "magic_link.replayed"

# ─── Companies ───────────────────────────────────────────

COMPANY_CREATED = "company.created"
COMPANY_UPDATED = "company.updated"
COMPANY_DELETED = "company.deleted"
COMPANY_SWITCHED = "company.switched"
INVITE_CREATED = "invite.created"
INVITE_ACCEPTED = "invite.accepted"

# ─── Resources ───────────────────────────────────────────

WORKSPACE_CREATED = "workspace.created"
WORKSPACE_UPDATED = "workspace.updated"
WORKSPACE_DELETED = "workspace.deleted"
APP_CREATED = "app.created"
APP_UPDATED = "app.updated"
APP_DELETED = "app.deleted"
TABLE_CREATED = "table.created"
