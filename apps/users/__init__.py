"""Users app package.

Email-login accounts with a customer/staff/admin role. Guest checkouts
create flagged accounts without a usable password.
"""
