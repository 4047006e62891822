"""
Dashboard blueprint: server-rendered pages for logged-in members.

Ideas are demo content only; the team pages drive Stytch's organization and
member APIs with the permissions of the logged-in member.
"""
