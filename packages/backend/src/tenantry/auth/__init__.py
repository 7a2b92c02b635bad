"""Authentication: sessions, magic links, passwords, identity resolution.

Learn: Every credential is an opaque random token stored server-side.
Three kinds exist:
1. Session tokens → presented on every request (cookie or Bearer header)
2. Magic-link tokens → single-use, exchanged once for a session
3. Invite codes → single-use, exchanged once for a company membership

The IdentityResolver turns a session token into a CurrentUser that the
request pipeline attaches for all downstream handlers.
"""
