"""
Site authentication service.

Handles registration with e-mail verification, password login with
server-side sessions, profile editing, and gated access to post
attachments through short-lived signed URLs.
"""
