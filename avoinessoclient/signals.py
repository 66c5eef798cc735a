from django.dispatch import Signal

# Sent with ``user`` and ``identity`` right before the local session is created.
sso_login_before = Signal()

# Sent with ``user`` and ``identity`` once the local session exists.
sso_login_after = Signal()

# Sent with ``request`` and ``reason`` when a captured SSO login fails.
sso_login_failed = Signal()

# Sent with ``user`` after the SSO logout callback ended the local session.
sso_logout_after = Signal()

# Sent with ``user``, ``identity`` and ``profile`` after a local user is provisioned.
sso_user_created = Signal()

# Sent with ``user`` (None during login), ``identity`` and ``active``.
sso_user_is_active_checked = Signal()

# Sent with ``user`` when a password login attempt for an SSO user is refused.
sso_password_login_prevented = Signal()


def notify(signal, sender, **kwargs):
    """Send a signal without letting receivers change the control flow.

    Receiver exceptions are caught and logged by Django itself.
    """
    signal.send_robust(sender=sender, **kwargs)
