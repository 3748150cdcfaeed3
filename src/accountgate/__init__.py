"""accountgate — account/user authentication service.

One Account (email + password) can own several named Users. Login
resolves which User is acting, issues short-lived access tokens and
long-lived refresh tokens, and lets a session switch between the Users
of the same Account without re-entering the password.
"""

__version__ = "0.1.0"
